from __future__ import annotations

from typing import Any, Dict


class IngestError(Exception):
    """Raised when a single document cannot be ingested."""

    code = "ingest_failed"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        code: str | None = None,
        extra: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        if code is not None:
            self.code = code
        self.extra = extra or {}

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class DecodeError(IngestError):
    """Raised when no candidate encoding decodes the raw bytes."""

    code = "decode_failed"


class ParseError(IngestError):
    """Raised when the decoded text is not well-formed markup."""

    code = "parse_failed"


class StructureError(IngestError):
    """Raised when a required container (e.g. ``<text><body>``) is missing."""

    code = "structure_missing"


class ConstraintError(IngestError):
    """Raised when the store rejects a write for violating a uniqueness or key rule."""

    code = "constraint_violated"


__all__ = [
    "ConstraintError",
    "DecodeError",
    "IngestError",
    "ParseError",
    "StructureError",
]

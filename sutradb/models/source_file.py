"""Source file model definition."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return the current UTC timestamp."""

    return datetime.now(UTC)


class SourceFile(SQLModel, table=True):
    """One ingested TEI document, keyed by its path relative to the corpus root."""

    __tablename__ = "source_files"

    id: Optional[int] = Field(default=None, primary_key=True)
    rel_path: str = Field(
        unique=True,
        index=True,
        nullable=False,
        description="POSIX path of the document relative to the corpus root.",
    )
    sha1: str = Field(nullable=False, description="SHA-1 digest of the raw file bytes.")
    tei_header: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Verbatim ``<teiHeader>`` block, when present.",
    )
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)


__all__ = ["SourceFile"]

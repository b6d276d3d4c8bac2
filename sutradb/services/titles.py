"""Localized (Korean) section title lookup."""

from __future__ import annotations

import json
import logging
import unicodedata
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)

TitleLookup = Callable[[str | None, str | None, str | None, str | None], str | None]


class TitleMap(BaseModel):
    """Title tables keyed by ``xml:id``, by ``type|n`` and by section title text."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    xml_id: dict[str, str] = Field(default_factory=dict, alias="xmlId")
    type_n: dict[str, str] = Field(default_factory=dict, alias="typeN")
    head: dict[str, str] = Field(default_factory=dict)

    @field_validator("xml_id", "type_n", "head", mode="after")
    @classmethod
    def _lowercase_keys(cls, value: dict[str, str]) -> dict[str, str]:
        return {
            unicodedata.normalize("NFC", key).lower(): title
            for key, title in value.items()
        }

    def lookup(
        self,
        xml_id: str | None,
        section_type: str | None,
        section_n: str | None,
        head: str | None,
    ) -> str | None:
        """Return the localized title for a section, first match wins."""

        key = (xml_id or "").lower()
        if key and key in self.xml_id:
            return self.xml_id[key]

        section_type = (section_type or "").lower()
        section_n = (section_n or "").lower()
        if section_type and section_n:
            title = self.type_n.get(f"{section_type}|{section_n}")
            if title:
                return title

        if head:
            title = self.head.get(unicodedata.normalize("NFC", head).lower())
            if title:
                return title
        return None


def load_title_map(path: Path | str | None) -> TitleMap | None:
    """Read a title map JSON file; missing or unreadable files yield ``None``."""

    if not path:
        return None
    path = Path(path)
    if not path.exists():
        LOGGER.warning("Korean title map not found at %s. Titles will be left empty.", path)
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return TitleMap.model_validate(raw)
    except (OSError, ValueError, ValidationError) as exc:
        LOGGER.warning("Failed to read Korean title map %s: %s", path, exc)
        return None


__all__ = ["TitleLookup", "TitleMap", "load_title_map"]

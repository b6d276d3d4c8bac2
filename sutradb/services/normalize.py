from __future__ import annotations

import re
import unicodedata

LINE_ENDINGS_RE = re.compile(r"\r\n?")
HORIZONTAL_SPACE_RE = re.compile(r"[\t ]+")
NBSP = "\u00a0"


def normalize_content(text: str | None) -> str | None:
    """Return the display form of ``text``: NFC, one space per run, trimmed lines."""

    if not text:
        return None
    s = LINE_ENDINGS_RE.sub("\n", text)
    s = s.replace(NBSP, " ")
    s = unicodedata.normalize("NFC", s)
    lines = [HORIZONTAL_SPACE_RE.sub(" ", line.strip()) for line in s.split("\n")]
    collapsed = "\n".join(lines).strip()
    return collapsed or None


__all__ = ["normalize_content"]

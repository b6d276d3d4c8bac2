"""Byte decoding and header extraction for TEI source files."""

from __future__ import annotations

import codecs
import hashlib
import logging
import re
from typing import Sequence

from ..config import DEFAULT_ENCODINGS
from ..utils.errors import DecodeError

LOGGER = logging.getLogger(__name__)

_BOM_ENCODINGS = (
    (codecs.BOM_UTF16_BE, "utf-16-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
)
_TEI_HEADER_RE = re.compile(r"<teiHeader[\s\S]*?</teiHeader>", re.IGNORECASE)


def candidate_encodings(
    data: bytes, encodings: Sequence[str] = DEFAULT_ENCODINGS
) -> list[str]:
    """Return the encodings to try for ``data``, BOM-indicated one first."""

    ordered = list(encodings)
    head = data[:2]
    for bom, name in _BOM_ENCODINGS:
        if head == bom:
            ordered.insert(0, name)
            break
    return list(dict.fromkeys(ordered))


def decode_xml(
    data: bytes, rel_path: str, encodings: Sequence[str] = DEFAULT_ENCODINGS
) -> str:
    """Decode raw TEI bytes, returning the first strict decode that succeeds."""

    tried = candidate_encodings(data, encodings)
    for encoding in tried:
        try:
            decoded = data.decode(encoding)
        except UnicodeDecodeError as exc:
            LOGGER.debug("Decoding %s as %s failed: %s", rel_path, encoding, exc)
            continue
        return decoded.removeprefix("\ufeff")
    raise DecodeError(
        f"Unable to decode XML. Tried {', '.join(tried)}",
        path=rel_path,
        extra={"encodings": tried},
    )


def extract_tei_header(xml_text: str) -> str | None:
    """Return the first ``<teiHeader>`` block verbatim, or ``None``."""

    match = _TEI_HEADER_RE.search(xml_text)
    return match.group(0) if match else None


def content_sha1(data: bytes) -> str:
    """Return the SHA-1 hex digest identifying a file's byte content."""

    return hashlib.sha1(data).hexdigest()


__all__ = [
    "candidate_encodings",
    "content_sha1",
    "decode_xml",
    "extract_tei_header",
]

from __future__ import annotations

import logging
import sys

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")


def resolve_level(name: str) -> int:
    """Map a level name such as ``"trace"`` or ``"debug"`` to its numeric value."""

    level_name = name.strip().upper()
    if level_name == "TRACE":
        return TRACE_LEVEL
    level = getattr(logging, level_name, None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str = "INFO") -> logging.Logger:
    numeric = resolve_level(level)
    logging.basicConfig(
        level=numeric,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s | %(message)s",
    )
    logger = logging.getLogger("sutradb")
    logger.setLevel(numeric)
    return logger


__all__ = ["TRACE_LEVEL", "configure_logging", "resolve_level"]

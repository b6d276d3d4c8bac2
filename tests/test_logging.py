"""Tests for logging configuration."""

from __future__ import annotations

import logging

from sutradb.utils.logging import TRACE_LEVEL, configure_logging, resolve_level


def test_resolve_level_knows_trace_and_falls_back_to_info() -> None:
    assert resolve_level("trace") == TRACE_LEVEL
    assert resolve_level(" debug ") == logging.DEBUG
    assert resolve_level("chatty") == logging.INFO
    assert logging.getLevelName(TRACE_LEVEL) == "TRACE"


def test_configure_logging_uses_the_requested_level(monkeypatch) -> None:
    monkeypatch.setenv("SUTRADB_LOG_LEVEL", "error")
    logger = logging.getLogger("sutradb")
    previous = logger.level
    try:
        assert configure_logging("trace") is logger
        assert logger.level == TRACE_LEVEL
    finally:
        logger.setLevel(previous)

"""Test configuration for sutradb."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Generator

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from sutradb.config import reset_settings_cache  # noqa: E402
from sutradb.database import create_db_engine, init_db, reset_database_state  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Provide isolated configuration for each test."""

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("SUTRADB_TITLE_MAP", str(tmp_path / "missing_titles.json"))
    for name in (
        "DB_URL",
        "SUTRADB_SOURCE_DIR",
        "SUTRADB_PATTERN",
        "SUTRADB_ENCODINGS",
        "SUTRADB_HALT_ON_ERROR",
        "SUTRADB_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    reset_database_state()
    yield
    reset_settings_cache()
    reset_database_state()


@pytest.fixture()
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Return an initialised engine backed by a temporary SQLite file."""

    db_engine = init_db(create_db_engine(f"sqlite:///{tmp_path / 'store.db'}"))
    yield db_engine
    db_engine.dispose()

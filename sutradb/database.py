"""Database utilities for the sutradb ingester."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session, SQLModel, create_engine

from . import config as config_module
from .migrations import run_migrations

_engine: Engine | None = None


def _sqlite_pragmas(*, file_backed: bool):
    """Return a ``connect`` listener enforcing foreign keys on SQLite connections."""

    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys = ON")
            if file_backed:
                cursor.execute("PRAGMA journal_mode = WAL")
                cursor.execute("PRAGMA synchronous = NORMAL")
        finally:
            cursor.close()

    return _on_connect


def create_db_engine(database_url: str) -> Engine:
    """Return an engine for ``database_url``; relative SQLite paths resolve against the cwd."""

    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url)

    database = url.database
    file_backed = bool(database) and database != ":memory:"
    if file_backed:
        db_path = Path(database)
        if not db_path.is_absolute():
            db_path = (Path.cwd() / db_path).resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = url.set(database=str(db_path))
        database_url = url.render_as_string(hide_password=False)

    engine = create_engine(database_url, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _sqlite_pragmas(file_backed=file_backed))
    return engine


def get_engine() -> Engine:
    """Return a SQLModel engine using configured settings."""

    global _engine
    if _engine is None:
        settings = config_module.get_settings()
        _engine = create_db_engine(settings.database_url)
    return _engine


def get_session() -> Generator[Session, None, None]:
    """Provide a SQLModel session bound to the configured engine."""

    engine = get_engine()
    with Session(engine) as session:
        yield session


def init_db(engine: Engine | None = None) -> Engine:
    """Create tables and apply pending migrations; return the engine used."""

    from .models import (  # noqa: F401  Ensures models are registered with SQLModel metadata.
        source_file,
        structure,
    )

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    run_migrations(engine)
    return engine


def reset_database_state() -> None:
    """Reset the cached engine (useful for tests)."""

    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None

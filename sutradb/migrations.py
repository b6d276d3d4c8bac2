"""Lightweight schema migration helpers for the sutradb store."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError


MigrationFunc = Callable[[Engine], None]


def _ensure_column(engine: Engine, table: str, column: str, ddl: str) -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        try:
            columns = inspector.get_columns(table)
        except NoSuchTableError:
            return

        if any(existing["name"] == column for existing in columns):
            return

        connection.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))


def _ensure_node_head_korean(engine: Engine) -> None:
    """Add the localized ``head_korean`` title to ``nodes`` if it is missing."""

    _ensure_column(engine, "nodes", "head_korean", "TEXT")


def _ensure_block_content_norm(engine: Engine) -> None:
    """Add the normalized ``content_norm`` text to ``blocks`` when absent."""

    _ensure_column(engine, "blocks", "content_norm", "TEXT")


_MIGRATIONS: tuple[MigrationFunc, ...] = (
    _ensure_node_head_korean,
    _ensure_block_content_norm,
)


def run_migrations(engine: Engine, migrations: Iterable[MigrationFunc] | None = None) -> None:
    """Execute idempotent schema migrations for the provided engine."""

    for migration in migrations or _MIGRATIONS:
        migration(engine)

"""Configuration utilities for the sutradb ingester."""

from __future__ import annotations

import codecs
import os
from functools import lru_cache
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _env_flag(name: str, default: bool) -> bool:
    """Return a boolean flag derived from environment variables."""

    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional(name: str) -> str | None:
    """Return the stripped environment value or ``None`` when blank."""

    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

DEFAULT_DATABASE_URL = "sqlite:///./db/sutra.sqlite"
DEFAULT_FILE_PATTERN = "romn/**/*.xml"
DEFAULT_TITLE_MAP = Path("data") / "korean_titles.json"
DEFAULT_ENCODINGS: Tuple[str, ...] = ("utf-16-le", "utf-16-be")


def _load_environment() -> None:
    """Load environment variables from a ``.env`` file if present."""

    explicit_path = os.getenv("SUTRADB_ENV_FILE")
    candidates = []

    if explicit_path:
        candidates.append(Path(explicit_path))

    candidates.append(PROJECT_ROOT / ".env")

    for candidate in candidates:
        try_path = candidate.expanduser()
        if try_path.exists():
            load_dotenv(try_path, override=False)


_load_environment()


def _database_url_default() -> str:
    """Return the configured database URL using legacy fallbacks."""

    return os.getenv("DATABASE_URL") or os.getenv("DB_URL") or DEFAULT_DATABASE_URL


def _encodings_default() -> Tuple[str, ...]:
    raw = os.getenv("SUTRADB_ENCODINGS")
    if raw is None:
        return DEFAULT_ENCODINGS
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _source_dir_default() -> Path | None:
    raw = _env_optional("SUTRADB_SOURCE_DIR")
    return Path(raw) if raw is not None else None


def _limit_default() -> str | None:
    return _env_optional("SUTRADB_LIMIT")


class Settings(BaseModel):
    """Ingester configuration loaded from environment variables."""

    model_config = ConfigDict(validate_default=True)

    database_url: str = Field(default_factory=_database_url_default)
    source_dir: Path | None = Field(default_factory=_source_dir_default)
    file_pattern: str = Field(
        default_factory=lambda: os.getenv("SUTRADB_PATTERN", DEFAULT_FILE_PATTERN)
    )
    title_map_path: Path | None = Field(
        default_factory=lambda: Path(
            os.getenv("SUTRADB_TITLE_MAP", str(DEFAULT_TITLE_MAP))
        )
    )
    encodings: Tuple[str, ...] = Field(default_factory=_encodings_default)
    halt_on_error: bool = Field(
        default_factory=lambda: _env_flag("SUTRADB_HALT_ON_ERROR", False)
    )
    file_limit: int | None = Field(default_factory=_limit_default)
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "info"))

    @field_validator("encodings", mode="after")
    @classmethod
    def _normalise_encodings(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            return DEFAULT_ENCODINGS
        names = tuple(dict.fromkeys(item.strip().lower() for item in value if item.strip()))
        for name in names:
            try:
                codecs.lookup(name)
            except LookupError as exc:
                raise ValueError(f"Unknown text encoding: {name}") from exc
        return names or DEFAULT_ENCODINGS

    @field_validator("file_limit", mode="after")
    @classmethod
    def _normalise_limit(cls, value: int | None) -> int | None:
        if value is None or value <= 0:
            return None
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return cached ingester settings."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached settings so that subsequent calls reload from the environment."""

    get_settings.cache_clear()

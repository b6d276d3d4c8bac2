"""Import TEI XML files into the sutradb store."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .database import create_db_engine, init_db
from .services.ingest import discover_files, ingest_paths
from .services.titles import load_title_map
from .utils.errors import IngestError
from .utils.logging import configure_logging

LOGGER = logging.getLogger("sutradb")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the importer."""

    settings = get_settings()
    parser = argparse.ArgumentParser(prog="sutradb", description=__doc__)
    parser.add_argument(
        "--source",
        "-s",
        type=Path,
        default=settings.source_dir,
        required=settings.source_dir is None,
        help="Root of the TEI XML corpus (e.g. a tipitaka-xml checkout).",
    )
    parser.add_argument(
        "--db",
        "-d",
        default=settings.database_url,
        help="Destination database URL or SQLite file path.",
    )
    parser.add_argument(
        "--pattern",
        "-p",
        default=settings.file_pattern,
        help="Glob pattern, relative to --source, selecting the XML files.",
    )
    parser.add_argument(
        "--korean-map",
        "-k",
        type=Path,
        default=settings.title_map_path,
        help="JSON file that maps identifiers to Korean titles.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.file_limit,
        help="Process only the first N files (useful for testing).",
    )
    parser.add_argument(
        "--fail-fast",
        dest="halt_on_error",
        action="store_true",
        default=settings.halt_on_error,
        help="Stop the whole run at the first failing document.",
    )
    parser.add_argument(
        "--continue-on-error",
        dest="halt_on_error",
        action="store_false",
        help="Roll back a failing document and continue with the next (default).",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (trace, debug, info, warning, error).",
    )
    return parser.parse_args(argv)


def _database_url(value: str) -> str:
    """Accept either a SQLAlchemy URL or a bare SQLite file path."""

    if "://" in value:
        return value
    return f"sqlite:///{Path(value).expanduser().resolve()}"


def main(argv: list[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    args = parse_args(argv)
    configure_logging(args.log_level)

    source_root = args.source.expanduser().resolve()
    if not source_root.is_dir():
        LOGGER.error("Source directory not found: %s", source_root)
        return 2

    files = discover_files(source_root, args.pattern, args.limit)
    if not files:
        LOGGER.warning("No XML files matched the given pattern.")
        return 0

    engine = init_db(create_db_engine(_database_url(args.db)))
    title_map = load_title_map(args.korean_map)

    try:
        summary = ingest_paths(
            engine,
            source_root,
            files,
            title_lookup=title_map.lookup if title_map is not None else None,
            encodings=settings.encodings,
            halt_on_error=args.halt_on_error,
        )
    except (IngestError, OSError, SQLAlchemyError) as exc:
        LOGGER.error("Run halted: %s", exc)
        return 1
    finally:
        engine.dispose()

    print(
        f"Completed. Files: {summary.files}, Pages: {summary.pages}, "
        f"Blocks: {summary.blocks}, Failed: {len(summary.failures)} "
        f"({summary.elapsed_seconds:.1f}s)"
    )
    for failure in summary.failures:
        print(f"  {failure.rel_path}: [{failure.code}] {failure.message}", file=sys.stderr)
    return 1 if summary.failures else 0


if __name__ == "__main__":
    raise SystemExit(main())

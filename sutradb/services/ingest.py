"""Per-document replace transactions and the sequential batch runner."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from time import perf_counter
from typing import Sequence

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, delete, select

from ..config import DEFAULT_ENCODINGS
from ..models import PhysicalPage, SourceFile, StructuralNode, TextBlock
from ..utils.errors import ConstraintError, IngestError
from .decoding import content_sha1, decode_xml, extract_tei_header
from .titles import TitleLookup
from .walker import TreeWalker
from .xml_tree import XmlNode, find_body, parse_xml

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PreparedDocument:
    """Decoded and parsed document, ready to be written."""

    rel_path: str
    sha1: str
    tei_header: str | None
    body: XmlNode


@dataclass(slots=True)
class IngestResult:
    """Counts produced by one document's transaction."""

    rel_path: str
    source_file_id: int
    created: bool
    nodes: int = 0
    pages: int = 0
    blocks: int = 0


@dataclass(slots=True)
class BatchFailure:
    rel_path: str
    code: str
    message: str


@dataclass(slots=True)
class BatchSummary:
    """Aggregate outcome of a batch run."""

    files: int = 0
    nodes: int = 0
    pages: int = 0
    blocks: int = 0
    failures: list[BatchFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> int:
        return self.files - len(self.failures)


class SessionRecordSink:
    """Write walker records through ``session``, flushing to obtain row ids."""

    def __init__(self, session: Session, rel_path: str) -> None:
        self._session = session
        self._rel_path = rel_path

    def _store(self, record: StructuralNode | PhysicalPage | TextBlock) -> int:
        self._session.add(record)
        _flush(self._session, self._rel_path)
        return record.id  # type: ignore[return-value]

    def add_node(self, node: StructuralNode) -> int:
        return self._store(node)

    def add_page(self, page: PhysicalPage) -> int:
        return self._store(page)

    def add_block(self, block: TextBlock) -> int:
        return self._store(block)


def _flush(session: Session, rel_path: str) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConstraintError(
            f"Store rejected write: {exc.orig}", path=rel_path
        ) from exc


def prepare_document(
    rel_path: str, data: bytes, encodings: Sequence[str] = DEFAULT_ENCODINGS
) -> PreparedDocument:
    """Decode, hash and parse raw bytes; nothing is written."""

    xml_text = decode_xml(data, rel_path, encodings)
    root = parse_xml(xml_text, rel_path)
    return PreparedDocument(
        rel_path=rel_path,
        sha1=content_sha1(data),
        tei_header=extract_tei_header(xml_text),
        body=find_body(root, rel_path),
    )


def _clear_document(session: Session, source_file_id: int) -> None:
    """Delete a document's dependents, blocks before pages before nodes."""

    for model in (TextBlock, PhysicalPage, StructuralNode):
        session.exec(delete(model).where(model.source_file_id == source_file_id))


def replace_document(
    session: Session,
    document: PreparedDocument,
    *,
    title_lookup: TitleLookup | None = None,
) -> IngestResult:
    """Replace everything stored for ``document`` within one transaction.

    The session's transaction is committed on success and rolled back on any
    error, so a failed document leaves the store exactly as it was.
    """

    try:
        source = session.exec(
            select(SourceFile).where(SourceFile.rel_path == document.rel_path)
        ).first()
        created = source is None
        if source is None:
            source = SourceFile(
                rel_path=document.rel_path,
                sha1=document.sha1,
                tei_header=document.tei_header,
            )
            session.add(source)
            _flush(session, document.rel_path)
        else:
            source.sha1 = document.sha1
            source.tei_header = document.tei_header
            source.updated_at = datetime.now(UTC)
            session.add(source)
            _clear_document(session, source.id)  # type: ignore[arg-type]

        source_file_id = source.id
        walker = TreeWalker(
            SessionRecordSink(session, document.rel_path), title_lookup=title_lookup
        )
        context = walker.walk(document.body, source_file_id)  # type: ignore[arg-type]

        _flush(session, document.rel_path)
        session.commit()
    except Exception:
        session.rollback()
        raise

    return IngestResult(
        rel_path=document.rel_path,
        source_file_id=source_file_id,  # type: ignore[arg-type]
        created=created,
        nodes=context.node_count,
        pages=context.page_count,
        blocks=context.block_count,
    )


def ingest_document(
    session: Session,
    rel_path: str,
    data: bytes,
    *,
    title_lookup: TitleLookup | None = None,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
) -> IngestResult:
    """Decode, parse and store one document's bytes under ``rel_path``."""

    document = prepare_document(rel_path, data, encodings)
    return replace_document(session, document, title_lookup=title_lookup)


def delete_source_file(session: Session, rel_path: str) -> bool:
    """Remove a document and, by cascade, everything projected from it.

    Returns ``True`` if the document existed and was removed, otherwise ``False``.
    """

    source = session.exec(
        select(SourceFile).where(SourceFile.rel_path == rel_path)
    ).first()
    if source is None:
        return False
    session.delete(source)
    session.commit()
    return True


def discover_files(
    source_root: Path, pattern: str, limit: int | None = None
) -> list[str]:
    """Return sorted POSIX paths (relative to ``source_root``) matching ``pattern``."""

    files = sorted(
        path.relative_to(source_root).as_posix()
        for path in source_root.glob(pattern)
        if path.is_file()
    )
    if limit is not None:
        files = files[:limit]
    return files


def ingest_paths(
    engine: Engine,
    source_root: Path,
    rel_paths: Sequence[str],
    *,
    title_lookup: TitleLookup | None = None,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
    halt_on_error: bool = False,
) -> BatchSummary:
    """Ingest ``rel_paths`` one at a time, each in its own transaction.

    A failing document is rolled back and recorded in ``failures``; with
    ``halt_on_error`` the error is re-raised instead and the run stops.
    """

    summary = BatchSummary()
    started = perf_counter()
    for rel_path in rel_paths:
        summary.files += 1
        try:
            data = (source_root / rel_path).read_bytes()
            with Session(engine) as session:
                result = ingest_document(
                    session,
                    rel_path,
                    data,
                    title_lookup=title_lookup,
                    encodings=encodings,
                )
        except (IngestError, OSError, SQLAlchemyError) as exc:
            if isinstance(exc, IngestError):
                exc.path = exc.path or rel_path
                code = exc.code
            else:
                code = type(exc).__name__
            message = exc.message if isinstance(exc, IngestError) else str(exc)
            LOGGER.error("Failed to process %s: %s", rel_path, message)
            summary.failures.append(BatchFailure(rel_path, code, message))
            if halt_on_error:
                summary.elapsed_seconds = perf_counter() - started
                raise
            continue

        summary.nodes += result.nodes
        summary.pages += result.pages
        summary.blocks += result.blocks
        LOGGER.info(
            "Processed %s (nodes=%s, pages=%s, blocks=%s)",
            rel_path,
            result.nodes,
            result.pages,
            result.blocks,
        )

    summary.elapsed_seconds = perf_counter() - started
    return summary


__all__ = [
    "BatchFailure",
    "BatchSummary",
    "IngestResult",
    "PreparedDocument",
    "SessionRecordSink",
    "delete_source_file",
    "discover_files",
    "ingest_document",
    "ingest_paths",
    "prepare_document",
    "replace_document",
]

"""Tests for per-document replace transactions and the batch runner."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from sutradb.models import PhysicalPage, SourceFile, StructuralNode, TextBlock
from sutradb.services.decoding import content_sha1
from sutradb.services.ingest import (
    delete_source_file,
    discover_files,
    ingest_document,
    ingest_paths,
)
from sutradb.utils.errors import ConstraintError, DecodeError, StructureError
from tei_samples import tei, utf16

DOC = tei(
    "<div xml:id='dn' type='book' n='1'><head>Dīgha</head>"
    "<p>intro</p>"
    "<pb n='1.0001'/>"
    "<div xml:id='dn1' type='sutta' n='1'><head>Brahmajāla</head>"
    "<p>evaṃ  me sutaṃ</p><lg><l>one</l><l>two</l></lg></div>"
    "<pb n='1.0002'/>"
    "<div xml:id='dn2' type='sutta' n='2'><p>tail</p></div>"
    "</div>"
)


def _rows(session: Session, model, source_file_id: int) -> list:
    statement = select(model).where(model.source_file_id == source_file_id)
    return list(session.exec(statement))


def _snapshot(session: Session, source_file_id: int) -> dict[str, list[tuple]]:
    """Return the stored records with row ids replaced by document-relative positions."""

    nodes = sorted(_rows(session, StructuralNode, source_file_id), key=lambda n: n.id)
    pages = sorted(_rows(session, PhysicalPage, source_file_id), key=lambda p: p.page_no)
    blocks = sorted(
        _rows(session, TextBlock, source_file_id), key=lambda b: b.order_in_file
    )
    node_pos = {node.id: index for index, node in enumerate(nodes)}
    page_pos = {page.id: page.page_no for page in pages}
    return {
        "nodes": [
            (
                node_pos.get(node.parent_id),
                node.xml_id,
                node.type,
                node.n,
                node.head,
                node.head_korean,
                node.order_in_parent,
                node.depth,
            )
            for node in nodes
        ],
        "pages": [(page.page_no, page.xml_id, page.n, page.facs) for page in pages],
        "blocks": [
            (
                block.order_in_file,
                block.kind,
                block.xml_id,
                block.content,
                block.content_norm,
                node_pos.get(block.node_id),
                page_pos.get(block.page_id),
            )
            for block in blocks
        ],
    }


def _counts(engine: Engine) -> tuple[int, int, int, int]:
    with Session(engine) as session:
        return tuple(
            len(list(session.exec(select(model))))
            for model in (SourceFile, StructuralNode, PhysicalPage, TextBlock)
        )


def test_ingest_document_persists_tree_pages_and_blocks(engine: Engine) -> None:
    data = utf16(DOC)
    with Session(engine) as session:
        result = ingest_document(session, "romn/dn.xml", data)

        source = session.exec(select(SourceFile)).one()
        snapshot = _snapshot(session, source.id)

    assert result.created is True
    assert (result.nodes, result.pages, result.blocks) == (3, 2, 4)
    assert source.rel_path == "romn/dn.xml"
    assert source.sha1 == content_sha1(data)
    assert source.tei_header == "<teiHeader><fileDesc>t</fileDesc></teiHeader>"

    assert snapshot["nodes"] == [
        (None, "dn", "book", "1", "Dīgha", None, 1, 1),
        (0, "dn1", "sutta", "1", "Brahmajāla", None, 1, 2),
        (0, "dn2", "sutta", "2", None, None, 2, 2),
    ]
    assert snapshot["pages"] == [(1, None, "1.0001", None), (2, None, "1.0002", None)]
    assert snapshot["blocks"] == [
        (1, "p", None, "intro", "intro", 0, None),
        (2, "p", None, "evaṃ  me sutaṃ", "evaṃ me sutaṃ", 1, 1),
        (3, "lg", None, "one\ntwo", "one\ntwo", 1, 1),
        (4, "p", None, "tail", "tail", 2, 2),
    ]


def test_title_lookup_fills_localized_titles(engine: Engine) -> None:
    def lookup(xml_id, section_type, section_n, head):
        return {"dn1": "범망경"}.get(xml_id or "")

    with Session(engine) as session:
        ingest_document(session, "dn.xml", utf16(DOC), title_lookup=lookup)
        titles = {
            node.xml_id: node.head_korean
            for node in session.exec(select(StructuralNode))
        }

    assert titles == {"dn": None, "dn1": "범망경", "dn2": None}


def test_reingest_is_idempotent(engine: Engine) -> None:
    data = utf16(DOC)
    with Session(engine) as session:
        first = ingest_document(session, "dn.xml", data)
        before = _snapshot(session, first.source_file_id)

    with Session(engine) as session:
        second = ingest_document(session, "dn.xml", data)
        after = _snapshot(session, second.source_file_id)

    assert second.created is False
    assert second.source_file_id == first.source_file_id
    assert after == before
    assert _counts(engine) == (1, 3, 2, 4)


def test_reingest_modified_document_replaces_only_its_rows(engine: Engine) -> None:
    other = utf16(tei("<div xml:id='mn'><p>majjhima</p></div>"))
    with Session(engine) as session:
        ingest_document(session, "dn.xml", utf16(DOC))
        other_result = ingest_document(session, "mn.xml", other)
        other_before = _snapshot(session, other_result.source_file_id)

    changed = utf16(tei("<div xml:id='dn'><pb n='9'/><p>rewritten</p></div>"))
    with Session(engine) as session:
        result = ingest_document(session, "dn.xml", changed)
        source = session.get(SourceFile, result.source_file_id)
        snapshot = _snapshot(session, result.source_file_id)
        other_after = _snapshot(session, other_result.source_file_id)

    assert source is not None
    assert source.sha1 == content_sha1(changed)
    assert snapshot["nodes"] == [(None, "dn", None, None, None, None, 1, 1)]
    assert snapshot["pages"] == [(1, None, "9", None)]
    assert snapshot["blocks"] == [(1, "p", None, "rewritten", "rewritten", 0, 1)]
    assert other_after == other_before
    assert _counts(engine) == (2, 2, 1, 2)


def test_decode_failure_leaves_store_untouched(engine: Engine) -> None:
    with Session(engine) as session:
        ingest_document(session, "dn.xml", utf16(DOC))

    with Session(engine) as session:
        with pytest.raises(DecodeError):
            ingest_document(session, "dn.xml", b"\xdc\xdc\xdc")
        with pytest.raises(DecodeError):
            ingest_document(session, "new.xml", b"\xdc\xdc\xdc")

    assert _counts(engine) == (1, 3, 2, 4)


def test_missing_body_raises_structure_error(engine: Engine) -> None:
    data = utf16("<TEI><teiHeader/><text><front/></text></TEI>")
    with Session(engine) as session:
        with pytest.raises(StructureError) as excinfo:
            ingest_document(session, "front.xml", data)

    assert excinfo.value.path == "front.xml"
    assert _counts(engine) == (0, 0, 0, 0)


def test_duplicate_section_id_rolls_back_whole_document(engine: Engine) -> None:
    with Session(engine) as session:
        first = ingest_document(session, "dn.xml", utf16(DOC))
        before = _snapshot(session, first.source_file_id)
        first_sha = session.get(SourceFile, first.source_file_id).sha1

    duplicate = utf16(tei("<div xml:id='x'><p>a</p></div><div xml:id='x'/>"))
    with Session(engine) as session:
        with pytest.raises(ConstraintError) as excinfo:
            ingest_document(session, "dn.xml", duplicate)
        assert excinfo.value.path == "dn.xml"

    with Session(engine) as session:
        with pytest.raises(ConstraintError):
            ingest_document(session, "fresh.xml", duplicate)

    with Session(engine) as session:
        assert _snapshot(session, first.source_file_id) == before
        assert session.get(SourceFile, first.source_file_id).sha1 == first_sha
        assert session.exec(
            select(SourceFile).where(SourceFile.rel_path == "fresh.xml")
        ).first() is None


def test_repeated_block_and_page_ids_are_stored(engine: Engine) -> None:
    data = utf16(tei("<p xml:id='a'>x</p><pb xml:id='a'/><p xml:id='a'>y</p>"))
    with Session(engine) as session:
        result = ingest_document(session, "dup.xml", data)

    assert (result.pages, result.blocks) == (1, 2)
    assert _counts(engine) == (1, 0, 1, 2)


def test_section_ids_may_repeat_across_documents(engine: Engine) -> None:
    data = utf16(tei("<div xml:id='shared'/>"))
    with Session(engine) as session:
        ingest_document(session, "a.xml", data)
        ingest_document(session, "b.xml", data)

    assert _counts(engine) == (2, 2, 0, 0)


def test_deleting_source_file_cascades(engine: Engine) -> None:
    with Session(engine) as session:
        ingest_document(session, "dn.xml", utf16(DOC))
        ingest_document(session, "mn.xml", utf16(tei("<p>keep</p>")))

    with Session(engine) as session:
        assert delete_source_file(session, "dn.xml") is True
        assert delete_source_file(session, "dn.xml") is False

    assert _counts(engine) == (1, 0, 0, 1)


def test_deleting_node_or_page_nulls_block_references(engine: Engine) -> None:
    with Session(engine) as session:
        result = ingest_document(session, "dn.xml", utf16(DOC))
        inner = session.exec(
            select(StructuralNode).where(StructuralNode.xml_id == "dn1")
        ).one()
        first_page = session.exec(
            select(PhysicalPage).where(PhysicalPage.page_no == 1)
        ).one()
        session.delete(inner)
        session.delete(first_page)
        session.commit()

    with Session(engine) as session:
        snapshot = _snapshot(session, result.source_file_id)

    assert len(snapshot["blocks"]) == 4
    # blocks 2 and 3 lost both their section and their page
    assert [block[5:] for block in snapshot["blocks"]] == [
        (0, None),
        (None, None),
        (None, None),
        (1, 2),
    ]


def _write_corpus(root: Path) -> None:
    (root / "romn" / "sub").mkdir(parents=True)
    (root / "romn" / "b.xml").write_bytes(utf16(tei("<p>b</p>")))
    (root / "romn" / "a.xml").write_bytes(utf16(tei("<pb/><p>a</p>")))
    (root / "romn" / "c_broken.xml").write_bytes(b"\xdc\xdc\xdc")
    (root / "romn" / "sub" / "d.xml").write_bytes(utf16(tei("<lg><l>d</l></lg>")))
    (root / "romn" / "notes.txt").write_text("ignored", encoding="utf-8")


def test_discover_files_is_sorted_relative_and_limited(tmp_path: Path) -> None:
    _write_corpus(tmp_path)

    assert discover_files(tmp_path, "romn/**/*.xml") == [
        "romn/a.xml",
        "romn/b.xml",
        "romn/c_broken.xml",
        "romn/sub/d.xml",
    ]
    assert discover_files(tmp_path, "romn/**/*.xml", limit=2) == [
        "romn/a.xml",
        "romn/b.xml",
    ]


def test_batch_continues_past_failing_document(tmp_path: Path, engine: Engine) -> None:
    _write_corpus(tmp_path)
    files = discover_files(tmp_path, "romn/**/*.xml")

    summary = ingest_paths(engine, tmp_path, files)

    assert summary.files == 4
    assert summary.succeeded == 3
    assert (summary.pages, summary.blocks) == (1, 3)
    assert [(f.rel_path, f.code) for f in summary.failures] == [
        ("romn/c_broken.xml", "decode_failed")
    ]
    assert _counts(engine) == (3, 0, 1, 3)


def test_batch_halts_on_error_when_requested(tmp_path: Path, engine: Engine) -> None:
    _write_corpus(tmp_path)
    files = discover_files(tmp_path, "romn/**/*.xml")

    with pytest.raises(DecodeError) as excinfo:
        ingest_paths(engine, tmp_path, files, halt_on_error=True)

    assert excinfo.value.path == "romn/c_broken.xml"
    # documents before the failure are committed, later ones never run
    with Session(engine) as session:
        stored = sorted(source.rel_path for source in session.exec(select(SourceFile)))
    assert stored == ["romn/a.xml", "romn/b.xml"]


def test_batch_reports_missing_file_with_path(tmp_path: Path, engine: Engine) -> None:
    summary = ingest_paths(engine, tmp_path, ["romn/missing.xml"])

    assert summary.failures[0].rel_path == "romn/missing.xml"
    assert summary.failures[0].code == "FileNotFoundError"

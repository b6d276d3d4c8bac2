"""Database models for the structure projected out of a TEI document."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return the current UTC timestamp."""

    return datetime.now(UTC)


def _source_file_column() -> Column:
    return Column(
        Integer,
        ForeignKey("source_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class StructuralNode(SQLModel, table=True):
    """Logical section (``<div>``) arranged as a tree per source file."""

    __tablename__ = "nodes"
    __table_args__ = (
        Index(
            "idx_nodes_source_xml",
            "source_file_id",
            "xml_id",
            unique=True,
            sqlite_where=text("xml_id IS NOT NULL"),
            postgresql_where=text("xml_id IS NOT NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    source_file_id: int = Field(sa_column=_source_file_column())
    parent_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("nodes.id", ondelete="CASCADE"), nullable=True
        ),
    )
    xml_id: str | None = Field(default=None, nullable=True)
    type: str | None = Field(default=None, nullable=True)
    n: str | None = Field(default=None, nullable=True)
    head: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    head_korean: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    order_in_parent: int = Field(nullable=False)
    depth: int = Field(nullable=False)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


class PhysicalPage(SQLModel, table=True):
    """Page of the printed edition, opened by a ``<pb>`` marker."""

    __tablename__ = "pages"
    __table_args__ = (
        UniqueConstraint("source_file_id", "page_no", name="uq_pages_source_page_no"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    source_file_id: int = Field(sa_column=_source_file_column())
    page_no: int = Field(nullable=False)
    xml_id: str | None = Field(default=None, nullable=True)
    n: str | None = Field(default=None, nullable=True)
    facs: str | None = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


class TextBlock(SQLModel, table=True):
    """Paragraph or verse group extracted in document order."""

    __tablename__ = "blocks"
    __table_args__ = (
        UniqueConstraint(
            "source_file_id", "order_in_file", name="uq_blocks_source_order"
        ),
        Index("idx_blocks_source_node", "source_file_id", "node_id"),
        Index("idx_blocks_page", "page_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    source_file_id: int = Field(sa_column=_source_file_column())
    node_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("nodes.id", ondelete="SET NULL"), nullable=True
        ),
    )
    page_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("pages.id", ondelete="SET NULL"), nullable=True
        ),
    )
    order_in_file: int = Field(nullable=False)
    kind: str = Field(nullable=False)
    xml_id: str | None = Field(default=None, nullable=True)
    content: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Verbatim extracted text.",
    )
    content_norm: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="NFC-composed, whitespace-collapsed rendition of ``content``.",
    )
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


__all__ = ["PhysicalPage", "StructuralNode", "TextBlock"]

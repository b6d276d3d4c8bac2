"""Recursive classification of a TEI body into sections, pages and text blocks.

The walker visits the body in document order and keeps three pieces of running
state in a :class:`WalkContext`:

* a stack of open sections (innermost last), each counting the sections
  produced directly beneath it so children get gap-free sibling orders;
* the page counter and the id of the most recently opened page;
* the document-wide block counter.

Each record is handed to a :class:`RecordSink` the moment it is produced; the
sink returns the stored id so later records can reference it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Union

from ..models import PhysicalPage, StructuralNode, TextBlock
from ..utils.logging import TRACE_LEVEL
from .normalize import normalize_content
from .titles import TitleLookup
from .xml_tree import XmlNode, collect_text

LOGGER = logging.getLogger(__name__)

SECTION_TAG = "div"
PAGE_BREAK_TAG = "pb"
VERSE_GROUP_TAG = "lg"
VERSE_LINE_TAG = "l"
TITLE_TAG = "head"
PARAGRAPH_TAGS = frozenset({"p", "ab", "sp", "q", "seg"})
TITLE_SEPARATOR = " | "


class RecordSink(Protocol):
    """Destination for walker output; each ``add_*`` returns the stored row id."""

    def add_node(self, node: StructuralNode) -> int: ...

    def add_page(self, page: PhysicalPage) -> int: ...

    def add_block(self, block: TextBlock) -> int: ...


@dataclass(slots=True)
class OpenSection:
    """A section whose subtree is still being walked."""

    node_id: int
    child_count: int = 0


@dataclass(slots=True)
class WalkContext:
    """Mutable traversal state for one document."""

    source_file_id: int
    open_sections: list[OpenSection] = field(default_factory=list)
    root_child_count: int = 0
    page_no: int = 0
    current_page_id: int | None = None
    order_in_file: int = 0
    node_count: int = 0
    block_count: int = 0

    @property
    def depth(self) -> int:
        return len(self.open_sections)

    @property
    def current_node_id(self) -> int | None:
        return self.open_sections[-1].node_id if self.open_sections else None

    @property
    def page_count(self) -> int:
        return self.page_no

    def next_sibling_order(self) -> int:
        if not self.open_sections:
            self.root_child_count += 1
            return self.root_child_count
        parent = self.open_sections[-1]
        parent.child_count += 1
        return parent.child_count


class TreeWalker:
    """Project a parsed TEI body onto :mod:`sutradb.models` records."""

    def __init__(self, sink: RecordSink, title_lookup: TitleLookup | None = None) -> None:
        self._sink = sink
        self._title_lookup = title_lookup

    def walk(self, body: XmlNode, source_file_id: int) -> WalkContext:
        """Walk ``body`` and return the final traversal state."""

        context = WalkContext(source_file_id=source_file_id)
        self._process_children(body.children, context)
        return context

    def _process_children(
        self, children: Iterable[Union[XmlNode, str]], context: WalkContext
    ) -> None:
        for child in children:
            if not isinstance(child, XmlNode):
                continue
            tag = child.tag
            if tag == PAGE_BREAK_TAG:
                self._handle_page_break(child, context)
            elif tag == SECTION_TAG:
                self._handle_section(child, context)
            elif tag in PARAGRAPH_TAGS:
                self._handle_paragraph(child, context)
            elif tag == VERSE_GROUP_TAG:
                self._handle_verse_group(child, context)
            elif tag == TITLE_TAG:
                # consumed by the enclosing section
                continue
            else:
                self._process_children(child.children, context)

    def _handle_page_break(self, element: XmlNode, context: WalkContext) -> None:
        context.page_no += 1
        page = PhysicalPage(
            source_file_id=context.source_file_id,
            page_no=context.page_no,
            xml_id=element.xml_id,
            n=element.attr("n") or None,
            facs=element.attr("facs") or None,
        )
        context.current_page_id = self._sink.add_page(page)
        LOGGER.log(TRACE_LEVEL, "page %s (n=%s)", page.page_no, page.n)

    def _handle_section(self, element: XmlNode, context: WalkContext) -> None:
        titles: list[str] = []
        remaining: list[Union[XmlNode, str]] = []
        for child in element.children:
            if isinstance(child, XmlNode) and child.tag == TITLE_TAG:
                title = collect_text(child.children).strip()
                if title:
                    titles.append(title)
            else:
                remaining.append(child)

        head = TITLE_SEPARATOR.join(titles) or None
        xml_id = element.xml_id
        section_type = element.attr("type") or None
        section_n = element.attr("n") or None
        head_korean = None
        if self._title_lookup is not None:
            head_korean = self._title_lookup(xml_id, section_type, section_n, head)

        node = StructuralNode(
            source_file_id=context.source_file_id,
            parent_id=context.current_node_id,
            xml_id=xml_id,
            type=section_type,
            n=section_n,
            head=head,
            head_korean=head_korean,
            order_in_parent=context.next_sibling_order(),
            depth=context.depth + 1,
        )
        node_id = self._sink.add_node(node)
        context.node_count += 1
        LOGGER.log(
            TRACE_LEVEL,
            "section %s depth=%s order=%s head=%r",
            xml_id or "-",
            node.depth,
            node.order_in_parent,
            head,
        )

        context.open_sections.append(OpenSection(node_id=node_id))
        try:
            self._process_children(remaining, context)
        finally:
            context.open_sections.pop()

    def _handle_paragraph(self, element: XmlNode, context: WalkContext) -> None:
        text = collect_text(element.children).rstrip()
        if not text.strip():
            return
        self._emit_block(element, element.tag, text, context)

    def _handle_verse_group(self, element: XmlNode, context: WalkContext) -> None:
        lines: list[str] = []
        for child in element.elements():
            if child.tag == VERSE_LINE_TAG:
                line = collect_text(child.children).strip()
                if line:
                    lines.append(line)
        if not lines:
            fallback = collect_text(element.children).strip()
            if fallback:
                lines.append(fallback)
        if not lines:
            return
        self._emit_block(element, VERSE_GROUP_TAG, "\n".join(lines), context)

    def _emit_block(
        self, element: XmlNode, kind: str, text: str, context: WalkContext
    ) -> None:
        context.order_in_file += 1
        block = TextBlock(
            source_file_id=context.source_file_id,
            node_id=context.current_node_id,
            page_id=context.current_page_id,
            order_in_file=context.order_in_file,
            kind=kind,
            xml_id=element.xml_id,
            content=text,
            content_norm=normalize_content(text),
        )
        self._sink.add_block(block)
        context.block_count += 1


__all__ = [
    "OpenSection",
    "PAGE_BREAK_TAG",
    "PARAGRAPH_TAGS",
    "RecordSink",
    "SECTION_TAG",
    "TITLE_SEPARATOR",
    "TreeWalker",
    "VERSE_GROUP_TAG",
    "WalkContext",
]

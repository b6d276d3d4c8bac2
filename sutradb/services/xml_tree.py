"""Order-preserving element tree built from decoded TEI text."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

from lxml import etree

from ..utils.errors import ParseError, StructureError

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
LINE_BREAK_TAGS = frozenset({"lb", "pb"})


@dataclass(slots=True)
class XmlNode:
    """Element with its attributes and an ordered mix of child elements and text runs.

    Children keep document order, repeated tag names included. Text runs are
    plain ``str`` entries sitting between the element children they separate.
    """

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list[Union["XmlNode", str]] = field(default_factory=list)

    def elements(self) -> Iterator["XmlNode"]:
        """Yield direct element children in document order."""

        for child in self.children:
            if isinstance(child, XmlNode):
                yield child

    def find(self, tag: str) -> "XmlNode | None":
        """Return the first direct child element named ``tag``."""

        for child in self.elements():
            if child.tag == tag:
                return child
        return None

    def attr(self, *names: str) -> str | None:
        """Return the first present attribute value among ``names``."""

        for name in names:
            value = self.attributes.get(name)
            if value is not None:
                return value
        return None

    @property
    def xml_id(self) -> str | None:
        return self.attr("xml:id", "xml_id") or None


def _local_name(name: str) -> str:
    return etree.QName(name).localname


def _attribute_name(name: str) -> str:
    qname = etree.QName(name)
    if qname.namespace == XML_NAMESPACE:
        return f"xml:{qname.localname}"
    return qname.localname


def _append_text(children: list[Union[XmlNode, str]], value: str | None) -> None:
    if not value:
        return
    if children and isinstance(children[-1], str):
        children[-1] += value
    else:
        children.append(value)


def _convert(element: etree._Element) -> XmlNode:
    node = XmlNode(
        tag=_local_name(element.tag),
        attributes={_attribute_name(key): value for key, value in element.attrib.items()},
    )
    _append_text(node.children, element.text)
    for child in element:
        # comments, processing instructions and unresolved entities carry
        # non-string tags; only their tail text belongs to the parent
        if isinstance(child.tag, str):
            node.children.append(_convert(child))
        _append_text(node.children, child.tail)
    return node


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(
        encoding="utf-8",
        remove_comments=True,
        remove_pis=True,
        resolve_entities="internal",
        collect_ids=False,
        no_network=True,
        huge_tree=True,
    )


def parse_xml(xml_text: str, rel_path: str | None = None) -> XmlNode:
    """Parse decoded markup into an :class:`XmlNode` tree rooted at the document element."""

    try:
        root = etree.fromstring(xml_text.encode("utf-8"), _make_parser())
    except etree.XMLSyntaxError as exc:
        raise ParseError(
            f"Malformed XML: {exc}",
            path=rel_path,
            extra={"line": getattr(exc, "lineno", None)},
        ) from exc
    return _convert(root)


def collect_text(children: list[Union[XmlNode, str]]) -> str:
    """Concatenate descendant text in order, turning ``lb``/``pb`` into line feeds."""

    pieces: list[str] = []
    stack: list[Iterator[Union[XmlNode, str]]] = [iter(children)]
    while stack:
        try:
            child = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue
        if isinstance(child, str):
            pieces.append(child)
        elif child.tag in LINE_BREAK_TAGS:
            pieces.append("\n")
        else:
            stack.append(iter(child.children))
    return "".join(pieces)


def find_body(root: XmlNode, rel_path: str | None = None) -> XmlNode:
    """Return the ``TEI > text > body`` container or raise :class:`StructureError`."""

    body = None
    if root.tag == "TEI":
        text_node = root.find("text")
        body = text_node.find("body") if text_node is not None else None
    if body is None:
        raise StructureError("<text><body> not found", path=rel_path)
    return body


__all__ = [
    "LINE_BREAK_TAGS",
    "XmlNode",
    "collect_text",
    "find_body",
    "parse_xml",
]

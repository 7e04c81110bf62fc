"""Line-aware XML parsing into a small tagged-variant tree.

Nodes are either ``XmlElement`` or ``XmlText``; callers dispatch on the
node type instead of probing for attributes. Expat reports the line of
every start and end tag, which gives exact, nesting-aware element spans
(a self-closing tag starts and ends on the same line).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union
from xml.parsers import expat

from syndex.errors import DocumentParseError


@dataclass
class XmlText:
    text: str
    line: int


@dataclass
class XmlElement:
    """An element with its prefix-stripped tag and non-namespace attributes."""

    tag: str
    qname: str
    attributes: dict[str, str]
    start_line: int
    end_line: int = 0
    children: list[XmlNode] = field(default_factory=list)

    def elements(self) -> list[XmlElement]:
        """Child elements in document order (text nodes skipped)."""
        return [c for c in self.children if isinstance(c, XmlElement)]


XmlNode = Union[XmlElement, XmlText]


def local_name(qname: str) -> str:
    """Strip a namespace prefix: ``"syn:log"`` -> ``"log"``."""
    return qname.rsplit(":", 1)[-1]


def _clean_attributes(raw: dict[str, str]) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for name, value in raw.items():
        if name == "xmlns" or name.startswith("xmlns:"):
            continue
        attrs.setdefault(local_name(name), value)
    return attrs


def parse_document(data: bytes | str, path: str = "") -> XmlElement:
    """Parse *data* and return the root element.

    Args:
        data: Raw document bytes (or already-decoded text).
        path: Document path, used in error messages only.

    Raises:
        DocumentParseError: If the document is empty or not well-formed.
    """
    parser = expat.ParserCreate()
    parser.buffer_text = True

    stack: list[XmlElement] = []
    roots: list[XmlElement] = []

    def on_start(qname: str, attrs: dict[str, str]) -> None:
        element = XmlElement(
            tag=local_name(qname),
            qname=qname,
            attributes=_clean_attributes(attrs),
            start_line=parser.CurrentLineNumber,
        )
        if stack:
            stack[-1].children.append(element)
        else:
            roots.append(element)
        stack.append(element)

    def on_end(qname: str) -> None:
        element = stack.pop()
        element.end_line = parser.CurrentLineNumber

    def on_text(text: str) -> None:
        if stack and text.strip():
            stack[-1].children.append(XmlText(text=text, line=parser.CurrentLineNumber))

    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end
    parser.CharacterDataHandler = on_text

    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        raise DocumentParseError(path, str(exc)) from exc

    if not roots:
        raise DocumentParseError(path, "no root element")
    return roots[0]

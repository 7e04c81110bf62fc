"""Structure chunker — typed, hierarchical fragments from one XML artifact.

Strategy:
- Parse the document into a tagged-variant tree (``xmltree``).
- Walk it depth-first in document order. Containers (API, proxy,
  sequence, ...) and flows (in/out/fault sequences) become fragments and
  parent context for their descendants; leaves (mediators) become
  fragments and are not descended into; anything else is transparent.
- Each fragment gets the next local index, an inclusive line span, a
  resolved name and a bounded embedding text.

Parents are always emitted before their children, which the reconciliation
pipeline relies on to resolve store identities in one pass.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from syndex.db.models import Span, TransientFragment
from syndex.errors import DocumentParseError
from syndex.ingest.tags import (
    TOP_LEVEL_KINDS,
    Role,
    classify,
    kind_from_path,
    resolve_name,
)
from syndex.ingest.xmltree import XmlElement, parse_document

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class _Context:
    """Parent linkage and enclosing top-level container for a subtree."""

    parent: int | None = None
    container_name: str | None = None
    container_kind: str | None = None


@dataclass
class _Cursor:
    """Mutable state scoped to one chunk call (never shared between calls)."""

    path: str
    lines: list[str]
    next_index: int = 0
    seen_spans: set[Span] = field(default_factory=set)
    fragments: list[TransientFragment] = field(default_factory=list)


class StructureChunker:
    """Split an integration-artifact XML document into typed fragments.

    Args:
        token_budget: Maximum number of tokens in an embedding text.
        min_token_length: Content tokens shorter than this are dropped.
        max_token_length: Content tokens this long or longer are dropped.
    """

    def __init__(
        self,
        token_budget: int = 150,
        min_token_length: int = 3,
        max_token_length: int = 50,
    ) -> None:
        if token_budget < 1:
            raise ValueError("token_budget must be >= 1")
        if min_token_length < 1 or max_token_length <= min_token_length:
            raise ValueError("token lengths must satisfy 1 <= min_token_length < max_token_length")
        self.token_budget = token_budget
        self.min_token_length = min_token_length
        self.max_token_length = max_token_length

    def chunk(self, path: str | Path) -> list[TransientFragment]:
        """Chunk the document at *path*; a malformed document yields ``[]``.

        Parse failures are logged as warnings and never raised.
        """
        try:
            return self.chunk_strict(path)
        except DocumentParseError as exc:
            logger.warning("%s — no fragments produced", exc)
            return []

    def chunk_strict(self, path: str | Path) -> list[TransientFragment]:
        """Like chunk(), but raise DocumentParseError for malformed documents.

        Raises:
            DocumentParseError: If the file is empty, unreadable or not
                well-formed XML.
        """
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise DocumentParseError(str(path), str(exc)) from exc
        return self.chunk_content(data, str(path))

    def chunk_content(self, content: bytes | str, path: str = "") -> list[TransientFragment]:
        """Chunk already-loaded document *content*; *path* drives kind inference.

        Raises:
            DocumentParseError: If *content* is not well-formed XML.
        """
        root = parse_document(content, path)
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
        cursor = _Cursor(path=path, lines=_LINE_BREAK_RE.split(text))
        self._visit(root, _Context(), cursor)
        return cursor.fragments

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _visit(self, element: XmlElement, ctx: _Context, cursor: _Cursor) -> None:
        role = classify(element.tag, element.attributes)
        if role is None:
            self._visit_children(element, ctx, cursor)
            return

        span = Span(element.start_line, element.end_line)
        if span in cursor.seen_spans:
            # Another element already owns this exact line range.
            logger.debug("%s: <%s> shares span %s, skipped", cursor.path, element.tag, span)
            if role is not Role.LEAF:
                self._visit_children(element, ctx, cursor)
            return

        name = resolve_name(role, element.tag, element.attributes)
        if role is Role.CONTAINER and ctx.container_name is None:
            container_name = name
            container_kind = TOP_LEVEL_KINDS.get(element.tag) or kind_from_path(cursor.path)
        else:
            container_name = ctx.container_name or name
            container_kind = ctx.container_kind or kind_from_path(cursor.path)

        fragment = TransientFragment(
            local_index=cursor.next_index,
            container_name=container_name,
            container_kind=container_kind,
            fragment_kind=element.tag,
            span=span,
            embedding_text=self._embedding_text(element, name, span, cursor.lines),
            parent_local_index=ctx.parent,
        )
        cursor.next_index += 1
        cursor.seen_spans.add(span)
        cursor.fragments.append(fragment)

        if role is not Role.LEAF:
            child_ctx = _Context(
                parent=fragment.local_index,
                container_name=container_name,
                container_kind=container_kind,
            )
            self._visit_children(element, child_ctx, cursor)

    def _visit_children(self, element: XmlElement, ctx: _Context, cursor: _Cursor) -> None:
        for child in element.elements():
            self._visit(child, ctx, cursor)

    # ------------------------------------------------------------------
    # Embedding text
    # ------------------------------------------------------------------

    def _embedding_text(
        self, element: XmlElement, name: str, span: Span, lines: list[str]
    ) -> str:
        """Kind, name, attributes, then content tokens of the span, truncated."""
        tokens: list[str] = [element.tag, name]
        for key, value in element.attributes.items():
            tokens.append(key)
            tokens.append(value)

        raw = "\n".join(lines[span.start - 1 : span.end])
        stripped = _NON_WORD_RE.sub(" ", _TAG_RE.sub(" ", raw))
        tokens.extend(
            t
            for t in stripped.split()
            if self.min_token_length <= len(t) < self.max_token_length
        )
        return " ".join(t for t in tokens[: self.token_budget] if t)

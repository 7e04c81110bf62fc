"""Reconciliation pipeline — minimal re-indexing of one changed document.

For a document and its new fingerprint:
1. Chunk it (a malformed document is a no-op: stale fragments are kept).
2. Load its persisted fragments, keyed by span. Local indices are not
   stable across passes, so the span is the diff key.
3. Walk the new fragments in document order (parents before children),
   translating each ``parent_local_index`` into the store identity already
   resolved earlier in the same pass. A span-matched row is
   - left alone when nothing observable changed (same fingerprint, or same
     embedding text and metadata);
   - rewritten without re-embedding when only metadata / parent changed;
   - re-embedded and updated when its embedding text changed.
   Unmatched fragments are embedded and inserted.
4. Delete persisted rows whose span was not reproduced; the store cascades
   to their descendants.

Embedding calls are therefore proportional to the fragments that changed,
not to the size of the document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from syndex.db.models import Fragment, TransientFragment
from syndex.db.store import FragmentStore
from syndex.errors import DocumentParseError, EmbeddingError
from syndex.ingest.chunker import StructureChunker
from syndex.ingest.embedder import EmbeddingGateway

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile() call."""

    path: str
    inserted: int = 0
    updated: int = 0
    metadata_updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0
    embed_calls: int = 0
    parse_failed: bool = False

    @property
    def writes(self) -> int:
        return self.inserted + self.updated + self.metadata_updated + self.deleted

    @property
    def complete(self) -> bool:
        """False if some fragment was skipped and the document needs another pass."""
        return self.failed == 0


class ReconciliationPipeline:
    """Apply the minimal set of store writes that brings a document up to date.

    Args:
        chunker: Produces transient fragments in document order.
        gateway: Initialised embedding gateway.
        store: Fragment store (single writer).
    """

    def __init__(
        self,
        chunker: StructureChunker,
        gateway: EmbeddingGateway,
        store: FragmentStore,
    ) -> None:
        self._chunker = chunker
        self._gateway = gateway
        self._store = store

    def reconcile(self, path: str, fingerprint: str) -> ReconcileResult:
        """Bring the stored fragments of *path* in line with revision *fingerprint*.

        Raises:
            sqlite3.Error, ReferentialIntegrityError: Store failures propagate;
                re-running on the same fingerprint is safe.
        """
        result = ReconcileResult(path=path)
        try:
            chunks = self._chunker.chunk_strict(path)
        except DocumentParseError as exc:
            logger.warning("%s — keeping previously indexed fragments", exc)
            result.parse_failed = True
            return result

        existing = {f.span: f for f in self._store.list_by_document(path)}
        resolved: dict[int, int] = {}  # local index → store identity

        for chunk in chunks:
            stored = existing.pop(chunk.span, None)

            parent_id: int | None = None
            if chunk.parent_local_index is not None:
                parent_id = resolved.get(chunk.parent_local_index)
                if parent_id is None:
                    # Parent was skipped this pass; a child cannot be stored without it.
                    logger.warning(
                        "%s %s: parent not indexed, skipping <%s>",
                        path, chunk.span, chunk.fragment_kind,
                    )
                    result.failed += 1
                    continue

            if (
                stored is not None
                and stored.document_fingerprint == fingerprint
                and stored.parent_fragment_id == parent_id
            ):
                resolved[chunk.local_index] = stored.id
                result.unchanged += 1
                continue

            if stored is not None and stored.embedding_text == chunk.embedding_text:
                candidate = _to_fragment(path, fingerprint, chunk, parent_id, stored.embedding)
                resolved[chunk.local_index] = stored.id
                if candidate.same_metadata(stored):
                    result.unchanged += 1
                else:
                    self._store.update(stored.id, candidate)
                    result.metadata_updated += 1
                continue

            result.embed_calls += 1
            try:
                vector = self._gateway.embed(chunk.embedding_text)
            except EmbeddingError as exc:
                logger.warning("%s %s: %s — fragment skipped", path, chunk.span, exc)
                result.failed += 1
                if stored is not None:
                    resolved[chunk.local_index] = stored.id
                continue

            candidate = _to_fragment(path, fingerprint, chunk, parent_id, vector)
            if stored is not None:
                self._store.update(stored.id, candidate)
                resolved[chunk.local_index] = stored.id
                result.updated += 1
            else:
                resolved[chunk.local_index] = self._store.insert(candidate)
                result.inserted += 1

        for obsolete in sorted(existing.values(), key=lambda f: f.id or 0):
            # Already gone if an obsolete ancestor cascaded to it.
            self._store.delete(obsolete.id)
            result.deleted += 1

        logger.info(
            "Reconciled %s: %d inserted, %d updated, %d metadata-only, %d unchanged, "
            "%d deleted, %d failed",
            path, result.inserted, result.updated, result.metadata_updated,
            result.unchanged, result.deleted, result.failed,
        )
        return result

    def remove(self, path: str) -> int:
        """Drop every fragment of a document that no longer exists."""
        return self._store.delete_by_document(path)


def _to_fragment(
    path: str,
    fingerprint: str,
    chunk: TransientFragment,
    parent_id: int | None,
    embedding: list[float],
) -> Fragment:
    return Fragment(
        document_path=path,
        document_fingerprint=fingerprint,
        container_name=chunk.container_name,
        container_kind=chunk.container_kind,
        fragment_kind=chunk.fragment_kind,
        local_index=chunk.local_index,
        span=chunk.span,
        embedding_text=chunk.embedding_text,
        embedding=embedding,
        parent_fragment_id=parent_id,
    )

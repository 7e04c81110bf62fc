"""Query engine: embed the query, rank every fragment, return the top K.

Brute-force cosine ranking over the whole store; no re-ranking and no
filtering. Read-only, so it may run while a reconciliation is in flight
and observe a document mid-update.
"""

from __future__ import annotations

from dataclasses import dataclass

from syndex.db.store import FragmentStore
from syndex.ingest.embedder import EmbeddingGateway


@dataclass
class SearchResult:
    """One ranked fragment with the metadata needed to locate it.

    Attributes:
        fragment_id: Store identity of the fragment.
        similarity: Cosine similarity to the query in [-1, 1].
        name: Resolved name of the enclosing top-level container.
        parent_id: Store identity of the structural parent (None for roots).
    """

    fragment_id: int
    similarity: float
    document_path: str
    name: str
    container_kind: str
    fragment_kind: str
    start_line: int
    end_line: int
    parent_id: int | None = None


class QueryEngine:
    def __init__(self, gateway: EmbeddingGateway, store: FragmentStore) -> None:
        self._gateway = gateway
        self._store = store

    def search(self, query: str, top_k: int = 5) -> list[SearchResult]:
        """Return up to *top_k* fragments, most similar first.

        An empty store yields an empty list.

        Raises:
            EmbeddingError: If the query cannot be embedded.
        """
        if top_k <= 0:
            return []
        vector = self._gateway.embed(query)
        return [
            SearchResult(
                fragment_id=s.fragment.id,
                similarity=s.score,
                document_path=s.fragment.document_path,
                name=s.fragment.container_name,
                container_kind=s.fragment.container_kind,
                fragment_kind=s.fragment.fragment_kind,
                start_line=s.fragment.span.start,
                end_line=s.fragment.span.end,
                parent_id=s.fragment.parent_fragment_id,
            )
            for s in self._store.rank(vector, top_k)
        ]

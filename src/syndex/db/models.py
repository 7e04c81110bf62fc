"""Domain models for fragments: transient (one chunking pass) and persisted."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Span:
    """Inclusive 1-based line range of an element in its source document."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"Invalid span: {self.start}-{self.end}")

    def __str__(self) -> str:
        return f"L{self.start}-{self.end}"


@dataclass(frozen=True)
class TransientFragment:
    """One classified element produced by a single chunking pass.

    ``parent_local_index`` refers to another fragment of the same pass;
    it is never persisted as-is.
    """

    local_index: int
    container_name: str
    container_kind: str
    fragment_kind: str
    span: Span
    embedding_text: str
    parent_local_index: int | None = None


@dataclass
class Fragment:
    document_path: str
    document_fingerprint: str
    container_name: str
    container_kind: str
    fragment_kind: str
    local_index: int
    span: Span
    embedding_text: str
    embedding: list[float] = field(default_factory=list)
    parent_fragment_id: int | None = None
    last_updated: str | None = None
    id: int | None = None  # set by the store on insert; None for unsaved fragments

    def same_metadata(self, other: Fragment) -> bool:
        """True when every field that affects retrieval output matches *other*."""
        return (
            self.container_name == other.container_name
            and self.container_kind == other.container_kind
            and self.fragment_kind == other.fragment_kind
            and self.parent_fragment_id == other.parent_fragment_id
        )


@dataclass
class ScoredFragment:
    """A fragment together with its cosine similarity to a query vector."""

    fragment: Fragment
    score: float

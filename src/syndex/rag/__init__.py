"""syndex retrieval."""

from syndex.rag.query import QueryEngine, SearchResult

__all__ = ["QueryEngine", "SearchResult"]

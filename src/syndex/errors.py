"""Exception hierarchy shared by the syndex core.

Recoverable conditions (parse failure, one failed embedding) are handled by
the pipeline; initialisation failures (model, store) are fatal to the caller.
"""

from __future__ import annotations


class SyndexError(Exception):
    """Base class for every error raised by syndex."""


class DocumentParseError(SyndexError):
    """A document is not well-formed XML (or is empty / undecodable)."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot parse '{path}': {reason}")
        self.path = path
        self.reason = reason


class EmbeddingError(SyndexError):
    """A single embedding call failed or returned an unusable vector."""


class ModelLoadError(SyndexError):
    """The embedding model could not be initialised."""


class StoreUnavailableError(SyndexError):
    """The fragment store could not be opened or initialised."""


class FragmentNotFoundError(SyndexError):
    """An operation referenced a fragment identity that does not exist."""

    def __init__(self, fragment_id: int) -> None:
        super().__init__(f"Fragment {fragment_id} does not exist")
        self.fragment_id = fragment_id


class ReferentialIntegrityError(SyndexError):
    """A parent reference is dangling or crosses document boundaries."""

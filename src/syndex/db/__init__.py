"""syndex database layer."""

from syndex.db.connection import Database
from syndex.db.migrations import MIGRATIONS, initialize, run_migrations
from syndex.db.models import Fragment, ScoredFragment, Span, TransientFragment
from syndex.db.store import FragmentStore, IntegrityReport
from syndex.db.vectors import cosine_similarity, decode_vector, encode_vector

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Fragment",
    "FragmentStore",
    "IntegrityReport",
    "ScoredFragment",
    "Span",
    "TransientFragment",
    "cosine_similarity",
    "decode_vector",
    "encode_vector",
]

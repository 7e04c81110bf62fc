"""Fragment store: the single owner of persisted fragment rows.

Single interface for: insert / update / delete, per-document and global
listing, brute-force cosine ranking, hierarchy views and integrity checks.
Every write commits on its own, so each operation is atomic per row; a
multi-row reconciliation is not isolated from concurrent readers.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from syndex.db.models import Fragment, ScoredFragment, Span
from syndex.db.vectors import cosine_similarity, decode_vector, encode_vector
from syndex.errors import FragmentNotFoundError, ReferentialIntegrityError

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, document_path, document_fingerprint, container_name, container_kind,
    fragment_kind, local_index, start_line, end_line, parent_fragment_id,
    embedding_text, embedding, last_updated
"""


@dataclass
class IntegrityReport:
    """Result of FragmentStore.check_integrity(). Lists offending fragment ids."""

    dangling_parents: list[int] = field(default_factory=list)
    cross_document_parents: list[int] = field(default_factory=list)
    wrong_dimensions: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.dangling_parents or self.cross_document_parents or self.wrong_dimensions)


class FragmentStore:
    """Data access layer for persisted fragments.

    Wraps an open sqlite3.Connection (owned by the caller) whose schema was
    initialised with syndex.db.migrations.initialize().
    """

    def __init__(self, conn: sqlite3.Connection, dimensions: int) -> None:
        """Initialise with an open connection and the embedding dimension.

        Args:
            conn: Open connection with sqlite-vec loaded and schema initialised.
            dimensions: Vector dimension every stored embedding must have.
        """
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self._conn = conn
        self.dimensions = dimensions

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, fragment: Fragment) -> int:
        """Persist *fragment* under a fresh identity and return that identity.

        ``fragment.id`` is ignored; identities are assigned here only.

        Raises:
            ValueError: If the embedding has the wrong dimension.
            ReferentialIntegrityError: If the parent does not exist or belongs
                to another document.
            sqlite3.IntegrityError: If a live fragment of the same document
                already occupies the span.
        """
        self._check_dimension(fragment.embedding)
        self._check_parent(fragment.document_path, fragment.parent_fragment_id, None)
        cur = self._conn.execute(
            """
            INSERT INTO fragments (
                document_path, document_fingerprint, container_name, container_kind,
                fragment_kind, local_index, start_line, end_line, parent_fragment_id,
                embedding_text, embedding, last_updated
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                fragment.document_path,
                fragment.document_fingerprint,
                fragment.container_name,
                fragment.container_kind,
                fragment.fragment_kind,
                fragment.local_index,
                fragment.span.start,
                fragment.span.end,
                fragment.parent_fragment_id,
                fragment.embedding_text,
                encode_vector(fragment.embedding),
                _now_iso_utc(),
            ),
        )
        self._conn.commit()
        fragment_id = int(cur.lastrowid)
        logger.debug(
            "Inserted fragment %d (%s %s) of %s",
            fragment_id, fragment.fragment_kind, fragment.span, fragment.document_path,
        )
        return fragment_id

    def update(self, fragment_id: int, fragment: Fragment) -> None:
        """Overwrite every mutable field of row *fragment_id*.

        The identity and document path of the row are kept; the document
        path carried by *fragment* is not written.

        Raises:
            FragmentNotFoundError: If no row has this identity (no row is created).
            ValueError: If the embedding has the wrong dimension.
            ReferentialIntegrityError: For a dangling, cross-document or cyclic parent.
        """
        row = self._conn.execute(
            "SELECT document_path FROM fragments WHERE id = ?", (fragment_id,)
        ).fetchone()
        if row is None:
            raise FragmentNotFoundError(fragment_id)

        self._check_dimension(fragment.embedding)
        self._check_parent(row["document_path"], fragment.parent_fragment_id, fragment_id)
        self._conn.execute(
            """
            UPDATE fragments SET
                document_fingerprint = ?, container_name = ?, container_kind = ?,
                fragment_kind = ?, local_index = ?, start_line = ?, end_line = ?,
                parent_fragment_id = ?, embedding_text = ?, embedding = ?, last_updated = ?
            WHERE id = ?
            """,
            (
                fragment.document_fingerprint,
                fragment.container_name,
                fragment.container_kind,
                fragment.fragment_kind,
                fragment.local_index,
                fragment.span.start,
                fragment.span.end,
                fragment.parent_fragment_id,
                fragment.embedding_text,
                encode_vector(fragment.embedding),
                _now_iso_utc(),
                fragment_id,
            ),
        )
        self._conn.commit()
        logger.debug("Updated fragment %d (%s %s)", fragment_id, fragment.fragment_kind, fragment.span)

    def delete(self, fragment_id: int) -> bool:
        """Delete one fragment and, by cascade, every descendant.

        Returns:
            False if the row was already gone (e.g. removed by an earlier cascade).
        """
        cur = self._conn.execute("DELETE FROM fragments WHERE id = ?", (fragment_id,))
        self._conn.commit()
        if cur.rowcount:
            logger.debug("Deleted fragment %d", fragment_id)
        return bool(cur.rowcount)

    def delete_by_document(self, document_path: str) -> int:
        """Delete every fragment of *document_path*. Returns the number removed."""
        count = self.count(document_path)
        self._conn.execute("DELETE FROM fragments WHERE document_path = ?", (document_path,))
        self._conn.commit()
        if count:
            logger.info("Deleted %d fragments of %s", count, document_path)
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, fragment_id: int) -> Fragment | None:
        """Return a fragment by identity, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM fragments WHERE id = ?", (fragment_id,)
        ).fetchone()
        return _row_to_fragment(row) if row else None

    def list_by_document(self, document_path: str) -> list[Fragment]:
        """Return all live fragments of *document_path* in identity order."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM fragments WHERE document_path = ? ORDER BY id",
            (document_path,),
        ).fetchall()
        return [_row_to_fragment(r) for r in rows]

    def list_all(self) -> list[Fragment]:
        """Return every live fragment in identity (= insertion) order."""
        rows = self._conn.execute(f"SELECT {_COLUMNS} FROM fragments ORDER BY id").fetchall()
        return [_row_to_fragment(r) for r in rows]

    def list_documents(self) -> list[str]:
        """Return the distinct document paths that own at least one fragment."""
        rows = self._conn.execute(
            "SELECT DISTINCT document_path FROM fragments ORDER BY document_path"
        ).fetchall()
        return [r[0] for r in rows]

    def count(self, document_path: str | None = None) -> int:
        """Number of live fragments, optionally restricted to one document."""
        if document_path is None:
            return self._conn.execute("SELECT COUNT(*) FROM fragments").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM fragments WHERE document_path = ?", (document_path,)
        ).fetchone()[0]

    def count_by_kind(self) -> dict[str, int]:
        """Return {container_kind: fragment count}."""
        rows = self._conn.execute(
            "SELECT container_kind, COUNT(*) FROM fragments GROUP BY container_kind ORDER BY container_kind"
        ).fetchall()
        return {r[0]: r[1] for r in rows}

    # ------------------------------------------------------------------
    # Similarity ranking
    # ------------------------------------------------------------------

    def rank(self, query_vector: Sequence[float], top_k: int) -> list[ScoredFragment]:
        """Score every fragment against *query_vector*; return the best *top_k*.

        Results are sorted by descending cosine similarity. The sort is
        stable over identity order, so exact ties keep insertion order.

        Raises:
            ValueError: If *query_vector* has the wrong dimension.
        """
        self._check_dimension(query_vector)
        if top_k <= 0:
            return []
        scored = [
            ScoredFragment(fragment=f, score=cosine_similarity(query_vector, f.embedding))
            for f in self.list_all()
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:top_k]

    # ------------------------------------------------------------------
    # Hierarchy + integrity
    # ------------------------------------------------------------------

    def hierarchy(self, document_path: str | None = None) -> list[tuple[int, Fragment]]:
        """Return ``(depth, fragment)`` pairs in depth-first order.

        Roots are fragments without a parent; children follow their parent
        ordered by start line.
        """
        fragments = self.list_by_document(document_path) if document_path else self.list_all()
        children: dict[int | None, list[Fragment]] = {}
        for f in fragments:
            children.setdefault(f.parent_fragment_id, []).append(f)
        for siblings in children.values():
            siblings.sort(key=lambda f: (f.document_path, f.span.start, f.id))

        ordered: list[tuple[int, Fragment]] = []
        stack = [(0, f) for f in reversed(children.get(None, []))]
        while stack:
            depth, node = stack.pop()
            ordered.append((depth, node))
            for child in reversed(children.get(node.id, [])):
                stack.append((depth + 1, child))
        return ordered

    def check_integrity(self) -> IntegrityReport:
        """Report referential and dimensional corruption without repairing it."""
        report = IntegrityReport()
        report.dangling_parents = [
            r[0]
            for r in self._conn.execute(
                """
                SELECT c.id FROM fragments c
                LEFT JOIN fragments p ON p.id = c.parent_fragment_id
                WHERE c.parent_fragment_id IS NOT NULL AND p.id IS NULL
                ORDER BY c.id
                """
            ).fetchall()
        ]
        report.cross_document_parents = [
            r[0]
            for r in self._conn.execute(
                """
                SELECT c.id FROM fragments c
                JOIN fragments p ON p.id = c.parent_fragment_id
                WHERE p.document_path != c.document_path
                ORDER BY c.id
                """
            ).fetchall()
        ]
        report.wrong_dimensions = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM fragments WHERE vec_length(embedding) != ? ORDER BY id",
                (self.dimensions,),
            ).fetchall()
        ]
        return report

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, store expects {self.dimensions}"
            )

    def _check_parent(
        self, document_path: str, parent_id: int | None, fragment_id: int | None
    ) -> None:
        """Raise unless *parent_id* is a live fragment of *document_path*.

        For updates, also walk the parent's ancestor chain so a row can never
        become its own ancestor.
        """
        if parent_id is None:
            return
        row = self._conn.execute(
            "SELECT document_path FROM fragments WHERE id = ?", (parent_id,)
        ).fetchone()
        if row is None:
            raise ReferentialIntegrityError(f"Parent fragment {parent_id} does not exist")
        if row["document_path"] != document_path:
            raise ReferentialIntegrityError(
                f"Parent fragment {parent_id} belongs to '{row['document_path']}', "
                f"not '{document_path}'"
            )
        if fragment_id is None:
            return
        ancestor: int | None = parent_id
        while ancestor is not None:
            if ancestor == fragment_id:
                raise ReferentialIntegrityError(
                    f"Fragment {fragment_id} cannot be its own ancestor (via {parent_id})"
                )
            up = self._conn.execute(
                "SELECT parent_fragment_id FROM fragments WHERE id = ?", (ancestor,)
            ).fetchone()
            ancestor = up[0] if up else None


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_fragment(row: sqlite3.Row) -> Fragment:
    return Fragment(
        id=row["id"],
        document_path=row["document_path"],
        document_fingerprint=row["document_fingerprint"],
        container_name=row["container_name"],
        container_kind=row["container_kind"],
        fragment_kind=row["fragment_kind"],
        local_index=row["local_index"],
        span=Span(row["start_line"], row["end_line"]),
        parent_fragment_id=row["parent_fragment_id"],
        embedding_text=row["embedding_text"],
        embedding=decode_vector(row["embedding"]),
        last_updated=row["last_updated"],
    )


def _now_iso_utc() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")

"""Forward-only migration runner for the fragment store schema."""

from __future__ import annotations

import sqlite3

from syndex.errors import StoreUnavailableError

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# A span identifies a live fragment within its document; local indices are
# reassigned every chunking pass and are deliberately not part of the key.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS fragments (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    document_path        TEXT NOT NULL,
    document_fingerprint TEXT NOT NULL,
    container_name       TEXT NOT NULL,
    container_kind       TEXT NOT NULL,
    fragment_kind        TEXT NOT NULL,
    local_index          INTEGER NOT NULL,
    start_line           INTEGER NOT NULL,
    end_line             INTEGER NOT NULL,
    parent_fragment_id   INTEGER REFERENCES fragments(id) ON DELETE CASCADE,
    embedding_text       TEXT NOT NULL,
    embedding            BLOB NOT NULL,
    last_updated         TEXT NOT NULL,
    UNIQUE (document_path, start_line, end_line)
);

CREATE INDEX IF NOT EXISTS idx_fragments_document ON fragments(document_path);
CREATE INDEX IF NOT EXISTS idx_fragments_parent ON fragments(parent_fragment_id);
CREATE INDEX IF NOT EXISTS idx_fragments_container_kind ON fragments(container_kind);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]

CURRENT_VERSION = MIGRATIONS[-1][0]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema (idempotent).

    Raises:
        StoreUnavailableError: If the schema cannot be written (read-only file,
            corrupt database, ...).
    """
    try:
        run_migrations(conn)
    except sqlite3.Error as exc:
        raise StoreUnavailableError(f"Cannot initialise fragment store: {exc}") from exc

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from syndex.db.connection import Database
from syndex.db.migrations import initialize
from syndex.db.store import FragmentStore
from syndex.errors import EmbeddingError
from syndex.ingest.embedder import HashEmbedder

DIMS = 8

ORDER_API = """\
<?xml version="1.0" encoding="UTF-8"?>
<api xmlns="http://ws.apache.org/ns/synapse" name="OrderAPI" context="/orders">
    <resource methods="POST" uriTemplate="/create">
        <inSequence>
            <log level="full"/>
            <payloadFactory media-type="json">
                <format>{"orderId": "$1", "status": "accepted"}</format>
            </payloadFactory>
            <respond/>
        </inSequence>
        <faultSequence>
            <drop/>
        </faultSequence>
    </resource>
</api>
"""


class FakeGateway:
    """Deterministic, offline stand-in for EmbeddingGateway that counts calls.

    Texts containing any string in ``fail_on`` raise EmbeddingError.
    """

    def __init__(self, dimensions: int = DIMS, fail_on: tuple[str, ...] = ()) -> None:
        self.model = "fake"
        self.dimensions = dimensions
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.ready = False
        self._hash = HashEmbedder(dimensions)

    def initialize(self) -> None:
        self.ready = True

    def release(self) -> None:
        self.ready = False

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError(f"refusing to embed {text[:20]!r}")
        return self._hash.embed(text)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".syndex.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_db) -> FragmentStore:
    return FragmentStore(tmp_db, DIMS)


@pytest.fixture
def gateway() -> FakeGateway:
    gw = FakeGateway()
    gw.initialize()
    return gw


@pytest.fixture
def artifacts(tmp_path) -> Path:
    """An artifact tree with one API under apis/."""
    root = tmp_path / "artifacts"
    (root / "apis").mkdir(parents=True)
    (root / "apis" / "OrderAPI.xml").write_text(ORDER_API, encoding="utf-8")
    return root

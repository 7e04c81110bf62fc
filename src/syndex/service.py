"""Index service: scoped ownership of the store and the embedding gateway,
plus the sequential scheduler that keeps the store in sync with the
watched directories.

One scheduler drives every reconciliation, one document at a time, so the
store has a single writer. Termination requests are honoured only between
poll cycles; the store handle and the model handle are released on every
exit path.
"""

from __future__ import annotations

import logging
import signal
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import FrameType

from syndex.config import SyndexConfig
from syndex.db.connection import Database
from syndex.db.migrations import initialize
from syndex.db.store import FragmentStore
from syndex.errors import SyndexError
from syndex.ingest.chunker import StructureChunker
from syndex.ingest.embedder import EmbeddingGateway
from syndex.ingest.fingerprint import FingerprintTracker, ScanResult
from syndex.ingest.pipeline import ReconcileResult, ReconciliationPipeline
from syndex.rag.query import QueryEngine

logger = logging.getLogger(__name__)


@dataclass
class CycleSummary:
    """What one bootstrap or poll cycle did."""

    results: list[ReconcileResult] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    fragments_removed: int = 0

    @property
    def embed_calls(self) -> int:
        return sum(r.embed_calls for r in self.results)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.results)

    @property
    def idle(self) -> bool:
        return not (self.results or self.removed or self.errors)


class IndexService:
    """Open the store, load the model, and wire the pipeline components.

    Usage::

        with IndexService(cfg) as service:
            service.query_engine.search("order validation", top_k=5)

    Args:
        cfg: Loaded configuration.
        gateway: Pre-built gateway (tests); defaults to one built from
            ``cfg.embedding``.

    Raises (from open()):
        StoreUnavailableError: The store cannot be opened or initialised.
        ModelLoadError: The embedding model cannot be loaded.
    """

    def __init__(self, cfg: SyndexConfig, gateway: EmbeddingGateway | None = None) -> None:
        self.cfg = cfg
        self.gateway = gateway or EmbeddingGateway(
            cfg.embedding.model, cfg.embedding.dimensions, cfg.embedding.api_base
        )
        self._conn: sqlite3.Connection | None = None
        self._store: FragmentStore | None = None
        self.chunker = StructureChunker(
            token_budget=cfg.chunker.token_budget,
            min_token_length=cfg.chunker.min_token_length,
            max_token_length=cfg.chunker.max_token_length,
        )
        self.tracker = FingerprintTracker(cfg.watch.pattern, cfg.watch.exclude)

    def open(self) -> IndexService:
        """Open the store and load the model. Opening an open service is a no-op."""
        if self._conn is not None:
            return self
        self._conn = Database(self.cfg.store_path()).connect()
        try:
            initialize(self._conn)
            self._store = FragmentStore(self._conn, self.cfg.embedding.dimensions)
            self.gateway.initialize()
        except BaseException:
            self.close()
            raise
        logger.info("Index service ready (store %s)", self.cfg.store_path())
        return self

    def close(self) -> None:
        self.gateway.release()
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._store = None

    def __enter__(self) -> IndexService:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def store(self) -> FragmentStore:
        if self._store is None:
            raise RuntimeError("IndexService is not open")
        return self._store

    @property
    def pipeline(self) -> ReconciliationPipeline:
        return ReconciliationPipeline(self.chunker, self.gateway, self.store)

    @property
    def query_engine(self) -> QueryEngine:
        return QueryEngine(self.gateway, self.store)


class Scheduler:
    """Bootstrap once, then reconcile whatever changed every poll interval.

    Args:
        service: An open IndexService.
        roots: Directories to watch.
        poll_interval: Seconds between cycles.
    """

    def __init__(
        self,
        service: IndexService,
        roots: list[Path],
        poll_interval: float,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        self._service = service
        self._roots = list(roots)
        self.poll_interval = poll_interval
        self._pending_removals: set[str] = set()

    def bootstrap(self) -> CycleSummary:
        """Index every document under the roots and prune documents deleted since last run.

        Stored documents outside the current roots are left alone while the
        file still exists.
        """
        scan = self._service.tracker.scan(self._roots)
        known = self._service.tracker.known()
        for path in self._service.store.list_documents():
            if path not in known and not Path(path).exists():
                scan.removed.append(path)
        return self._process(scan)

    def run_cycle(self) -> CycleSummary:
        """Scan once and reconcile the delta."""
        return self._process(self._service.tracker.scan(self._roots))

    def run(self, stop_event: threading.Event) -> None:
        """Bootstrap, then poll until *stop_event* is set.

        The event is only consulted between cycles; a cycle in progress
        always runs to completion.
        """
        self.bootstrap()
        while not stop_event.wait(self.poll_interval):
            self.run_cycle()
        logger.info("Stop requested, scheduler exiting at cycle boundary")

    def _process(self, scan: ScanResult) -> CycleSummary:
        summary = CycleSummary()
        pipeline = self._service.pipeline
        tracker = self._service.tracker

        for path in sorted(self._pending_removals.union(scan.removed)):
            try:
                summary.fragments_removed += pipeline.remove(path)
            except sqlite3.Error:
                logger.exception("Removing fragments of %s failed; will retry", path)
                self._pending_removals.add(path)
                summary.errors.append(path)
                continue
            self._pending_removals.discard(path)
            summary.removed.append(path)

        for path, fingerprint in scan.changed:
            try:
                result = pipeline.reconcile(path, fingerprint)
            except (sqlite3.Error, SyndexError):
                logger.exception("Reconciliation of %s failed; will retry next cycle", path)
                tracker.invalidate(path)
                summary.errors.append(path)
                continue
            if not result.complete:
                tracker.invalidate(path)
            summary.results.append(result)

        if not summary.idle:
            logger.info(
                "Cycle: %d reconciled, %d removed, %d errors, %d embedding calls",
                len(summary.results), len(summary.removed), len(summary.errors),
                summary.embed_calls,
            )
        return summary


def install_stop_handlers(stop_event: threading.Event) -> None:
    """Set *stop_event* on SIGINT / SIGTERM. Must be called from the main thread."""

    def _handler(signum: int, frame: FrameType | None) -> None:
        logger.info("Received %s, stopping after the current cycle", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

"""syndex ingest pipeline — chunker, fingerprints, embedding gateway, reconciliation."""

from syndex.ingest.chunker import StructureChunker
from syndex.ingest.embedder import EmbeddingGateway, HashEmbedder
from syndex.ingest.fingerprint import FingerprintTracker, ScanResult, compute_fingerprint
from syndex.ingest.pipeline import ReconcileResult, ReconciliationPipeline

__all__ = [
    "EmbeddingGateway",
    "FingerprintTracker",
    "HashEmbedder",
    "ReconcileResult",
    "ReconciliationPipeline",
    "ScanResult",
    "StructureChunker",
    "compute_fingerprint",
]

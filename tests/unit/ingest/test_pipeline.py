"""Tests for ReconciliationPipeline — span-keyed minimal re-indexing."""

from __future__ import annotations

from pathlib import Path

import pytest

from syndex.db.store import FragmentStore
from syndex.ingest.chunker import StructureChunker
from syndex.ingest.fingerprint import compute_fingerprint
from syndex.ingest.pipeline import ReconciliationPipeline

from conftest import ORDER_API, FakeGateway

LOG_SEQUENCE = """\
<sequence name="LogSeq" xmlns="http://ws.apache.org/ns/synapse">
    <log level="simple"/>
    <drop/>
</sequence>
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def pipeline(store: FragmentStore, gateway: FakeGateway) -> ReconciliationPipeline:
    return ReconciliationPipeline(StructureChunker(), gateway, store)


def _write(path: Path, content: str) -> tuple[str, str]:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return str(path), compute_fingerprint(path)


def _snapshot(store: FragmentStore, path: str) -> dict:
    return {
        f.span: (f.id, f.last_updated, f.parent_fragment_id, f.embedding_text)
        for f in store.list_by_document(path)
    }


# ---------------------------------------------------------------------------
# First pass + idempotence
# ---------------------------------------------------------------------------


def test_first_pass_inserts_every_fragment(pipeline, store, gateway, tmp_path):
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)
    result = pipeline.reconcile(path, fp)

    assert result.inserted == 8
    assert result.embed_calls == len(gateway.calls) == 8
    assert result.complete
    assert store.count(path) == 8
    assert {f.document_fingerprint for f in store.list_by_document(path)} == {fp}


def test_second_pass_is_a_no_op(pipeline, store, gateway, tmp_path):
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)
    pipeline.reconcile(path, fp)
    before = _snapshot(store, path)
    gateway.calls.clear()

    result = pipeline.reconcile(path, fp)

    assert result.writes == 0
    assert result.unchanged == 8
    assert gateway.calls == []
    assert _snapshot(store, path) == before


def test_parents_resolve_to_live_rows_of_same_document(pipeline, store, tmp_path):
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)
    pipeline.reconcile(path, fp)

    fragments = {f.id: f for f in store.list_by_document(path)}
    children = [f for f in fragments.values() if f.parent_fragment_id is not None]
    assert len(children) == 7
    for child in children:
        parent = fragments[child.parent_fragment_id]
        assert parent.document_path == path
        assert parent.id < child.id
        assert parent.span.start <= child.span.start <= child.span.end <= parent.span.end
    assert store.check_integrity().ok


# ---------------------------------------------------------------------------
# Minimal diff
# ---------------------------------------------------------------------------


def test_one_changed_leaf_costs_one_embedding(pipeline, store, gateway, tmp_path):
    doc = tmp_path / "apis" / "OrderAPI.xml"
    path, fp = _write(doc, ORDER_API)
    pipeline.reconcile(path, fp)
    before = _snapshot(store, path)
    gateway.calls.clear()

    path, fp2 = _write(doc, ORDER_API.replace('<log level="full"/>', '<log level="custom"/>'))
    result = pipeline.reconcile(path, fp2)

    assert gateway.calls == ["log log level custom"]
    assert result.updated == 1
    assert result.unchanged == 7
    assert result.inserted == result.deleted == result.metadata_updated == 0

    after = _snapshot(store, path)
    assert after.keys() == before.keys()
    changed = [span for span in after if after[span] != before[span]]
    assert [str(s) for s in changed] == ["L5-5"]
    assert after[changed[0]][0] == before[changed[0]][0]  # identity kept


def test_renamed_container_reembeds_only_the_container(pipeline, store, gateway, tmp_path):
    doc = tmp_path / "sequences" / "LogSeq.xml"
    path, fp = _write(doc, LOG_SEQUENCE)
    pipeline.reconcile(path, fp)
    gateway.calls.clear()

    path, fp2 = _write(doc, LOG_SEQUENCE.replace('name="LogSeq"', 'name="AuditSeq"'))
    result = pipeline.reconcile(path, fp2)

    assert result.embed_calls == 1
    assert result.updated == 1
    assert result.metadata_updated == 2
    assert {f.container_name for f in store.list_by_document(path)} == {"AuditSeq"}


# ---------------------------------------------------------------------------
# Deletion + cascade
# ---------------------------------------------------------------------------


def test_deleting_one_leaf_removes_only_that_row(pipeline, store, gateway, tmp_path):
    doc = tmp_path / "sequences" / "LogSeq.xml"
    path, fp = _write(doc, LOG_SEQUENCE)
    first = pipeline.reconcile(path, fp)
    assert first.inserted == 3
    before = _snapshot(store, path)
    gateway.calls.clear()

    # Blank the line so the remaining spans are unchanged.
    path, fp2 = _write(doc, LOG_SEQUENCE.replace("    <drop/>", ""))
    result = pipeline.reconcile(path, fp2)

    assert result.deleted == 1
    assert result.inserted == result.updated == result.metadata_updated == 0
    assert gateway.calls == []
    after = _snapshot(store, path)
    assert len(after) == 2
    assert all(after[span] == before[span] for span in after)


def test_matched_children_survive_obsolete_parents(pipeline, store, tmp_path):
    doc = tmp_path / "apis" / "OrderAPI.xml"
    path, fp = _write(doc, ORDER_API)
    pipeline.reconcile(path, fp)
    in_seq_before = next(f for f in store.list_by_document(path) if f.fragment_kind == "inSequence")

    without_fault = ORDER_API.replace(
        "        <faultSequence>\n            <drop/>\n        </faultSequence>\n", ""
    )
    path, fp2 = _write(doc, without_fault)
    result = pipeline.reconcile(path, fp2)

    assert result.inserted == 2  # api and resource have new spans
    assert result.metadata_updated == 1  # inSequence re-parented
    assert result.unchanged == 3
    assert result.deleted == 4
    kinds = sorted(f.fragment_kind for f in store.list_by_document(path))
    assert kinds == ["api", "inSequence", "log", "payloadFactory", "resource", "respond"]
    in_seq_after = next(f for f in store.list_by_document(path) if f.fragment_kind == "inSequence")
    assert in_seq_after.id == in_seq_before.id
    assert store.check_integrity().ok


def test_document_without_fragments_clears_previous_rows(pipeline, store, tmp_path):
    doc = tmp_path / "sequences" / "LogSeq.xml"
    path, fp = _write(doc, LOG_SEQUENCE)
    pipeline.reconcile(path, fp)

    path, fp2 = _write(doc, "<root><comment/></root>\n")
    result = pipeline.reconcile(path, fp2)

    assert result.deleted == 3
    assert store.count(path) == 0


def test_remove_deletes_whole_document(pipeline, store, tmp_path):
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)
    other, other_fp = _write(tmp_path / "sequences" / "LogSeq.xml", LOG_SEQUENCE)
    pipeline.reconcile(path, fp)
    pipeline.reconcile(other, other_fp)

    assert pipeline.remove(path) == 8
    assert store.list_documents() == [other]
    assert store.check_integrity().ok


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_unparsable_document_keeps_stale_fragments(pipeline, store, gateway, tmp_path):
    doc = tmp_path / "apis" / "OrderAPI.xml"
    path, fp = _write(doc, ORDER_API)
    pipeline.reconcile(path, fp)
    before = _snapshot(store, path)
    gateway.calls.clear()

    path, fp2 = _write(doc, ORDER_API[:120])
    result = pipeline.reconcile(path, fp2)

    assert result.parse_failed
    assert result.writes == 0
    assert gateway.calls == []
    assert _snapshot(store, path) == before


def test_unparsable_new_document_writes_nothing(pipeline, store, tmp_path):
    path, fp = _write(tmp_path / "broken.xml", "<api name='x'>")
    result = pipeline.reconcile(path, fp)
    assert result.parse_failed
    assert store.count() == 0


def test_embedding_failure_skips_fragment_then_recovers(store, tmp_path):
    gateway = FakeGateway(fail_on=("payloadFactory",))
    gateway.initialize()
    pipeline = ReconciliationPipeline(StructureChunker(), gateway, store)
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)

    result = pipeline.reconcile(path, fp)
    assert result.failed == 1
    assert result.inserted == 7
    assert not result.complete
    assert "payloadFactory" not in {f.fragment_kind for f in store.list_by_document(path)}

    gateway.fail_on = ()
    gateway.calls.clear()
    retry = pipeline.reconcile(path, fp)
    assert retry.inserted == 1
    assert retry.unchanged == 7
    assert len(gateway.calls) == 1
    assert retry.complete


def test_failed_parent_skips_its_children(store, tmp_path):
    gateway = FakeGateway(fail_on=("inSequence",))
    gateway.initialize()
    pipeline = ReconciliationPipeline(StructureChunker(), gateway, store)
    path, fp = _write(tmp_path / "apis" / "OrderAPI.xml", ORDER_API)

    result = pipeline.reconcile(path, fp)

    assert result.failed == 4  # inSequence + log, payloadFactory, respond
    assert result.inserted == 4
    assert result.embed_calls == 5
    assert sorted(f.fragment_kind for f in store.list_by_document(path)) == [
        "api", "drop", "faultSequence", "resource",
    ]
    assert store.check_integrity().ok


def test_failed_reembed_keeps_old_row(pipeline, store, gateway, tmp_path):
    doc = tmp_path / "sequences" / "LogSeq.xml"
    path, fp = _write(doc, LOG_SEQUENCE)
    pipeline.reconcile(path, fp)
    before = _snapshot(store, path)

    gateway.fail_on = ("verbose",)
    path, fp2 = _write(doc, LOG_SEQUENCE.replace('level="simple"', 'level="verbose"'))
    result = pipeline.reconcile(path, fp2)

    assert result.failed == 1
    assert result.deleted == 0
    assert _snapshot(store, path) == before

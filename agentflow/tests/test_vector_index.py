"""Tests for the faiss-backed vector index."""

import pytest

from agentflow.common.vector_index import VectorIndex


def _record(record_id, values, **metadata):
    return {"id": record_id, "values": values, "metadata": metadata}


@pytest.fixture
def index():
    idx = VectorIndex(dimension=3)
    idx.upsert([
        _record("a", [1.0, 0.0, 0.0], content="alpha", agent_id="1"),
        _record("b", [0.9, 0.1, 0.0], content="beta", agent_id="1"),
        _record("c", [0.0, 1.0, 0.0], content="gamma", agent_id="2"),
    ])
    return idx


class TestVectorIndex:
    def test_query_orders_by_similarity(self, index):
        result = index.query([1.0, 0.0, 0.0], topk=3)
        assert result["ok"]
        assert [m["id"] for m in result["matches"]] == ["a", "b", "c"]
        assert result["matches"][0]["metadata"]["content"] == "alpha"

    def test_topk_limits_results(self, index):
        result = index.query([1.0, 0.0, 0.0], topk=1)
        assert len(result["matches"]) == 1

    def test_metadata_filter(self, index):
        result = index.query([1.0, 0.0, 0.0], topk=3, filter={"agent_id": "2"})
        assert [m["id"] for m in result["matches"]] == ["c"]

    def test_upsert_replaces_existing_id(self, index):
        index.upsert([_record("a", [0.0, 0.0, 1.0], content="alpha v2", agent_id="1")])
        assert index.count() == 3
        result = index.query([0.0, 0.0, 1.0], topk=1)
        assert result["matches"][0]["metadata"]["content"] == "alpha v2"

    def test_duplicate_ids_in_one_batch(self):
        idx = VectorIndex(dimension=2)
        result = idx.upsert([_record("x", [1.0, 0.0]), _record("x", [0.0, 1.0])])
        assert result["ok"]
        assert idx.count() == 1
        assert idx.query([0.0, 1.0], topk=1)["matches"][0]["score"] == pytest.approx(1.0)

    def test_dimension_mismatch_is_error_result(self, index):
        result = index.upsert([_record("bad", [1.0, 0.0])])
        assert not result["ok"]
        assert "dimension" in result["error"]
        assert not index.query([1.0, 0.0])["ok"]

    def test_delete(self, index):
        assert index.delete(["a", "missing"])["deleted"] == 1
        assert index.count() == 2

    def test_empty_index_query(self):
        result = VectorIndex(dimension=3).query([1.0, 0.0, 0.0])
        assert result == {"ok": True, "matches": []}

    def test_snapshot_round_trip(self, tmp_path):
        path = tmp_path / "index.faiss"
        idx = VectorIndex(dimension=2, snapshot_path=str(path))
        idx.upsert([_record("p", [0.6, 0.8], content="saved")])

        reloaded = VectorIndex(dimension=2, snapshot_path=str(path))
        assert reloaded.count() == 1
        match = reloaded.query([0.6, 0.8], topk=1)["matches"][0]
        assert match["id"] == "p"
        assert match["metadata"]["content"] == "saved"
        assert (tmp_path / "index.meta.json").exists()

    def test_snapshot_keeps_labels_after_delete(self, tmp_path):
        path = str(tmp_path / "index.faiss")
        idx = VectorIndex(dimension=2, snapshot_path=path)
        idx.upsert([_record("p", [1.0, 0.0]), _record("q", [0.0, 1.0])])
        idx.delete(["p"])

        reloaded = VectorIndex(dimension=2, snapshot_path=path)
        reloaded.upsert([_record("r", [1.0, 0.0])])

        assert reloaded.count() == 2
        assert [m["id"] for m in reloaded.query([1.0, 0.0], topk=2)["matches"]] == ["r", "q"]

    def test_scores_are_cosine(self, index):
        match = index.query([2.0, 0.0, 0.0], topk=1)["matches"][0]
        assert match["score"] == pytest.approx(1.0, abs=1e-5)

    def test_zero_vector_scores_zero(self):
        idx = VectorIndex(dimension=2)
        idx.upsert([_record("z", [0.0, 0.0])])
        assert idx.query([1.0, 0.0])["matches"][0]["score"] == 0.0

    def test_filter_looks_past_topk(self):
        idx = VectorIndex(dimension=2)
        idx.upsert([_record(f"a{i}", [1.0, 0.0], agent_id="1") for i in range(5)])
        idx.upsert([_record("b", [0.0, 1.0], agent_id="2")])

        result = idx.query([1.0, 0.0], topk=1, filter={"agent_id": "2"})

        assert [m["id"] for m in result["matches"]] == ["b"]

    def test_reupsert_after_delete(self, index):
        index.delete(["a"])
        index.upsert([_record("a", [1.0, 0.0, 0.0], content="alpha again", agent_id="1")])
        assert index.count() == 3
        assert index.query([1.0, 0.0, 0.0], topk=1)["matches"][0]["metadata"]["content"] == "alpha again"

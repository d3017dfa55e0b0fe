"""
Tests for rank fusion.
"""

import pytest

from hybridrag.core.exceptions import ValidationError
from hybridrag.models.search import SearchHit
from hybridrag.rag.retrieval.fusion import FusionEngine, FusionStrategy


def hit(id: str, score: float) -> SearchHit:
    return SearchHit(id=id, document_id=f"doc-{id}", chunk_index=0, text=f"text {id}", score=score)


@pytest.fixture
def engine():
    return FusionEngine(rrf_k=60)


class TestRRF:
    def test_chunk_in_both_lists_ranks_first(self, engine):
        dense = [hit("id1", 0.9), hit("id2", 0.8), hit("id3", 0.7)]
        sparse = [hit("id2", 5.0), hit("id4", 4.0), hit("id1", 3.0)]

        fused = engine.fuse_rrf(dense, sparse, top_k=10)

        top = fused[0]
        assert top.in_dense and top.in_sparse
        assert all(r.fused_score > 0 for r in fused)
        assert {r.id for r in fused} == {"id1", "id2", "id3", "id4"}

    def test_identical_lists_keep_order(self, engine):
        dense = [hit("a", 0.9), hit("b", 0.8), hit("c", 0.7)]
        sparse = [hit("a", 3.0), hit("b", 2.0), hit("c", 1.0)]

        fused = engine.fuse_rrf(dense, sparse, top_k=3)

        assert [r.id for r in fused] == ["a", "b", "c"]
        assert fused[0].fused_score == pytest.approx(2 / 61)
        assert fused[0].dense_score == 0.9
        assert fused[0].sparse_score == 3.0

    def test_dense_only(self, engine):
        fused = engine.fuse_rrf([hit("id1", 0.9)], [], top_k=10)

        assert len(fused) == 1
        assert fused[0].in_dense and not fused[0].in_sparse
        assert fused[0].sparse_score == 0.0
        assert fused[0].fused_score == pytest.approx(1 / 61)

    def test_sparse_only(self, engine):
        fused = engine.fuse_rrf([], [hit("id1", 4.2)], top_k=10)

        assert len(fused) == 1
        assert not fused[0].in_dense and fused[0].in_sparse
        assert fused[0].dense_score == 0.0

    def test_both_empty(self, engine):
        assert engine.fuse_rrf([], [], top_k=10) == []

    def test_ties_keep_dense_first(self, engine):
        fused = engine.fuse_rrf([hit("d", 0.5)], [hit("s", 9.0)], top_k=2)

        assert [r.id for r in fused] == ["d", "s"]
        assert fused[0].fused_score == fused[1].fused_score

    def test_duplicate_ids_use_first_occurrence(self, engine):
        dense = [hit("a", 0.9), hit("b", 0.8), hit("a", 0.1)]

        fused = engine.fuse_rrf(dense, [], top_k=10)

        assert [r.id for r in fused] == ["a", "b"]
        assert fused[0].dense_score == 0.9
        assert fused[0].fused_score == pytest.approx(1 / 61)

    def test_top_k_limit(self, engine):
        dense = [hit(f"d{i}", 1 - i / 10) for i in range(5)]
        sparse = [hit(f"s{i}", 5 - i) for i in range(5)]

        assert len(engine.fuse_rrf(dense, sparse, top_k=3)) == 3
        assert engine.fuse_rrf(dense, sparse, top_k=0) == []

    def test_invalid_k(self):
        with pytest.raises(ValidationError):
            FusionEngine(rrf_k=0)


class TestWeightedRRF:
    def test_weights_decide_winner(self, engine):
        dense = [hit("id1", 0.9), hit("id2", 0.8)]
        sparse = [hit("id2", 5.0), hit("id1", 4.0)]

        dense_weighted = engine.fuse_weighted_rrf(dense, sparse, 0.9, 0.1, top_k=10)
        sparse_weighted = engine.fuse_weighted_rrf(dense, sparse, 0.1, 0.9, top_k=10)

        assert len(dense_weighted) == 2
        assert len(sparse_weighted) == 2
        assert dense_weighted[0].id == "id1"
        assert sparse_weighted[0].id == "id2"

    def test_weights_are_normalized(self, engine):
        dense = [hit("a", 0.9)]
        sparse = [hit("b", 2.0)]

        small = engine.fuse_weighted_rrf(dense, sparse, 0.7, 0.3, top_k=2)
        large = engine.fuse_weighted_rrf(dense, sparse, 7, 3, top_k=2)

        assert [r.fused_score for r in small] == pytest.approx([r.fused_score for r in large])
        assert small[0].fused_score == pytest.approx(0.7 / 61)

    def test_equal_weights_match_plain_rrf_order(self, engine):
        dense = [hit("a", 0.9), hit("b", 0.8), hit("c", 0.1)]
        sparse = [hit("c", 3.0), hit("b", 2.0)]

        weighted = engine.fuse_weighted_rrf(dense, sparse, 0.5, 0.5, top_k=3)
        plain = engine.fuse_rrf(dense, sparse, top_k=3)

        assert [r.id for r in weighted] == [r.id for r in plain]

    @pytest.mark.parametrize("dense_weight,sparse_weight", [(0, 0), (-0.1, 1.0), (1.0, -1.0)])
    def test_invalid_weights(self, engine, dense_weight, sparse_weight):
        with pytest.raises(ValidationError):
            engine.fuse_weighted_rrf([hit("a", 1.0)], [], dense_weight, sparse_weight, top_k=1)


class TestLinear:
    def test_min_max_combination(self, engine):
        dense = [hit("id1", 0.9), hit("id2", 0.5)]
        sparse = [hit("id2", 10.0), hit("id3", 2.0)]

        fused = engine.fuse_linear(dense, sparse, alpha=0.5, top_k=10)

        scores = {r.id: r.fused_score for r in fused}
        assert scores["id1"] == pytest.approx(0.5)
        assert scores["id2"] == pytest.approx(0.5)
        assert scores["id3"] == pytest.approx(0.0)
        assert any(r.id == "id2" for r in fused)

    def test_constant_scores_normalize_to_one(self, engine):
        fused = engine.fuse_linear([hit("a", 0.4), hit("b", 0.4)], [], alpha=0.7, top_k=2)

        assert [r.fused_score for r in fused] == pytest.approx([0.7, 0.7])

    def test_alpha_one_is_dense_order(self, engine):
        dense = [hit("a", 0.9), hit("b", 0.3)]
        sparse = [hit("b", 9.0), hit("a", 1.0)]

        fused = engine.fuse_linear(dense, sparse, alpha=1.0, top_k=2)

        assert [r.id for r in fused] == ["a", "b"]

    @pytest.mark.parametrize("alpha", [-0.1, 1.5])
    def test_invalid_alpha(self, engine, alpha):
        with pytest.raises(ValidationError):
            engine.fuse_linear([], [], alpha=alpha, top_k=1)


class TestDispatch:
    @pytest.mark.parametrize("strategy", ["rrf", "weighted_rrf", "linear"])
    def test_fuse_accepts_strategy_names(self, engine, strategy):
        fused = engine.fuse([hit("a", 0.9)], [hit("a", 3.0)], top_k=1, strategy=strategy)

        assert fused[0].id == "a"
        assert fused[0].in_dense and fused[0].in_sparse

    def test_unknown_strategy(self, engine):
        with pytest.raises(ValueError):
            engine.fuse([], [], top_k=1, strategy="borda")

    def test_enum_values(self):
        assert FusionStrategy("weighted_rrf") is FusionStrategy.WEIGHTED_RRF

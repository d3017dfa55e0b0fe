"""
Tests for HybridSearch.
"""

import pytest

from hybridrag.core.exceptions import ExternalServiceError, ValidationError
from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.models.chunk import Chunk
from hybridrag.rag.retrieval import BM25Index, FusionStrategy, HybridSearch
from hybridrag.vectorstore import VectorPoint

DOCS = {
    "python": "Python decorators wrap functions to extend behaviour",
    "k8s": "Kubernetes schedules containers across cluster nodes",
    "rust": "Rust ownership prevents data races at compile time",
}


async def populate(store, index, embedder, categories=None):
    for document_id, text in DOCS.items():
        chunk = Chunk.create(document_id, 0, text, (categories or {}).get(document_id))
        vector = EmbeddingVector(await embedder.embed(text))
        await store.upsert(
            [
                VectorPoint(
                    id=chunk.id,
                    vector=vector,
                    document_id=document_id,
                    chunk_index=0,
                    text=text,
                    categories=chunk.categories,
                )
            ]
        )
        index.index_chunk(chunk)


@pytest.fixture
async def search(vector_store, embedder):
    index = BM25Index()
    await populate(vector_store, index, embedder)
    return HybridSearch(vector_store, index, embedder)


class TestHybridSearch:
    async def test_best_match_is_in_both_lists(self, search):
        results = await search.search("python decorators", top_k=3)

        assert results[0].document_id == "python"
        assert results[0].in_dense and results[0].in_sparse
        assert results[0].dense_score > results[1].dense_score

    async def test_top_k(self, search):
        assert len(await search.search("python decorators", top_k=1)) == 1

    async def test_lexical_only_term_still_surfaces(self, search):
        results = await search.search("ownership", top_k=3)

        rust = next(r for r in results if r.document_id == "rust")
        assert rust.in_sparse

    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query(self, search, query):
        with pytest.raises(ValidationError):
            await search.search(query, top_k=3)

    async def test_dense_failure_propagates(self, search, embedder):
        embedder.fail = True

        with pytest.raises(ExternalServiceError):
            await search.search("python", top_k=3)

    async def test_disabled_returns_dense_hits(self, vector_store, embedder):
        index = BM25Index()
        await populate(vector_store, index, embedder)
        dense_only = HybridSearch(vector_store, index, embedder, enabled=False)

        results = await dense_only.search("python decorators", top_k=2)

        assert len(results) == 2
        assert all(r.in_dense and not r.in_sparse for r in results)
        assert all(r.fused_score == r.dense_score for r in results)

    async def test_category_filter_applies_to_both_sides(self, vector_store, embedder):
        index = BM25Index()
        await populate(vector_store, index, embedder, categories={"rust": ["systems"]})
        search = HybridSearch(vector_store, index, embedder)

        results = await search.search("python decorators", top_k=3, category_filter="systems")

        assert [r.document_id for r in results] == ["rust"]

    async def test_linear_strategy(self, vector_store, embedder):
        index = BM25Index()
        await populate(vector_store, index, embedder)
        search = HybridSearch(
            vector_store, index, embedder, strategy=FusionStrategy.LINEAR, linear_alpha=0.5
        )

        results = await search.search("kubernetes cluster", top_k=3)

        assert results[0].document_id == "k8s"
        assert results[0].fused_score == pytest.approx(1.0)

    async def test_weights_are_normalized(self, vector_store, embedder):
        search = HybridSearch(vector_store, BM25Index(), embedder, dense_weight=7, sparse_weight=3)

        assert search.dense_weight == pytest.approx(0.7)
        assert search.sparse_weight == pytest.approx(0.3)

    def test_from_settings(self, make_settings, vector_store, embedder):
        settings = make_settings(hybrid={"strategy": "rrf", "enabled": False, "rrf_k": 10})

        search = HybridSearch.from_settings(settings, vector_store, BM25Index(), embedder)

        assert search.strategy is FusionStrategy.RRF
        assert search.enabled is False
        assert search.fusion.rrf_k == 10

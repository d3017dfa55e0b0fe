"""
Tests for the BM25 index.
"""

import math

import pytest

from hybridrag.models.chunk import Chunk
from hybridrag.rag.retrieval.lexical_index import BM25Index, tokenize


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("Spring-Boot: REST APIs!") == ["spring", "boot", "rest", "apis"]

    def test_drops_short_tokens_and_stopwords(self):
        assert tokenize("The API is on a new server with v2") == ["api", "server"]

    @pytest.mark.parametrize("text", ["", None, "the and for", "a b c"])
    def test_no_tokens(self, text):
        assert tokenize(text) == []


@pytest.fixture
def index():
    idx = BM25Index()
    idx.index("id1", "doc1", 0, "Spring Boot makes building Java services easy")
    idx.index("id2", "doc2", 0, "Python is a popular programming language")
    idx.index("id3", "doc3", 0, "Spring Framework supports dependency injection")
    return idx


class TestBM25Index:
    def test_index_and_search(self, index):
        assert index.size == 3

        results = index.search("spring boot", top_k=10)

        assert results
        assert "spring" in results[0].text.lower()
        assert results[0].id == "id1"
        assert {r.id for r in results} == {"id1", "id3"}

    def test_scores_are_descending(self, index):
        results = index.search("spring boot java dependency", top_k=10)

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_search_with_no_match(self, index):
        assert index.search("kubernetes", top_k=5) == []

    @pytest.mark.parametrize("query", ["", "   ", "the and of"])
    def test_query_without_tokens(self, index, query):
        assert index.search(query, top_k=5) == []

    def test_empty_index(self):
        assert BM25Index().search("anything useful", top_k=5) == []

    def test_top_k_limit(self, index):
        assert len(index.search("spring", top_k=1)) == 1
        assert index.search("spring", top_k=0) == []

    def test_higher_term_frequency_ranks_higher(self):
        idx = BM25Index()
        idx.index("once", "d", 0, "python guide tutorial lesson")
        idx.index("thrice", "d", 1, "python python python guide")

        results = idx.search("python", top_k=2)

        assert [r.id for r in results] == ["thrice", "once"]

    def test_term_in_every_chunk_still_scores_positive(self):
        idx = BM25Index()
        idx.index("a", "d", 0, "shared token alpha")
        idx.index("b", "d", 1, "shared token beta")

        results = idx.search("shared", top_k=5)

        assert len(results) == 2
        assert all(r.score > 0 for r in results)

    def test_single_chunk_score_matches_formula(self):
        idx = BM25Index()
        idx.index("a", "d", 0, "retrieval engine")

        [hit] = idx.search("retrieval", top_k=1)

        idf = math.log((1 - 1 + 0.5) / (1 + 0.5) + 1)
        # tf=1 and len == avg_len, so the tf part is (k1 + 1) / (1 + k1) == 1
        assert hit.score == pytest.approx(idf)

    def test_repeated_query_term_counts_each_time(self):
        idx = BM25Index()
        idx.index("a", "d", 0, "retrieval engine")

        single = idx.search("retrieval", top_k=1)[0].score
        double = idx.search("retrieval retrieval", top_k=1)[0].score

        assert double == pytest.approx(2 * single)

    def test_ties_keep_insertion_order(self):
        idx = BM25Index()
        for i in range(5):
            idx.index(f"id{i}", "doc", i, "identical chunk text")

        results = idx.search("identical", top_k=5)

        assert [r.id for r in results] == [f"id{i}" for i in range(5)]

    def test_reindex_same_id_is_idempotent(self, index):
        before = index.get_stats()
        first = index.search("python language", top_k=3)

        index.index("id2", "doc2", 0, "Python is a popular programming language")

        assert index.size == 3
        assert index.get_stats() == before
        assert [r.score for r in index.search("python language", top_k=3)] == pytest.approx(
            [r.score for r in first]
        )

    def test_reindex_replaces_text(self, index):
        index.index("id2", "doc2", 0, "Rust ownership model")

        assert index.size == 3
        assert index.search("python", top_k=5) == []
        assert index.search("rust", top_k=5)[0].id == "id2"

    def test_text_without_tokens_is_not_stored(self, index):
        assert index.index("empty", "doc9", 0, "the and of to") is False
        assert index.size == 3
        assert not index.contains("empty")

    def test_category_filter(self):
        idx = BM25Index()
        idx.index("hr", "d1", 0, "vacation policy details", categories=["hr"])
        idx.index("it", "d2", 0, "vacation laptop policy", categories=["it"])
        idx.index("none", "d3", 0, "vacation policy overview")

        results = idx.search("vacation policy", top_k=10, category_filter="hr")

        assert [r.id for r in results] == ["hr"]

    def test_remove(self):
        idx = BM25Index()
        idx.index("id1", "doc1", 0, "Spring Boot tutorial")
        idx.index("id2", "doc2", 0, "Python tutorial")
        assert idx.size == 2

        assert idx.remove("id1") is True
        assert idx.remove("id1") is False

        assert idx.size == 1
        results = idx.search("tutorial", top_k=10)
        assert len(results) == 1
        assert results[0].id == "id2"

    def test_remove_by_document_id(self):
        idx = BM25Index()
        idx.index("c1", "doc1", 0, "first chunk text")
        idx.index("c2", "doc1", 1, "second chunk text")
        idx.index("c3", "doc2", 0, "other document text")
        assert idx.size == 3

        assert idx.remove_by_document_id("doc1") == 2
        assert idx.size == 1
        assert idx.remove_by_document_id("missing") == 0

    def test_clear(self, index):
        index.clear()

        assert index.size == 0
        assert index.vocabulary_size == 0
        assert index.average_document_length == 0.0
        assert index.search("spring", top_k=5) == []

    def test_stats(self):
        idx = BM25Index()
        idx.index("a", "d", 0, "alpha beta gamma")
        idx.index("b", "d", 1, "delta epsilon")

        stats = idx.get_stats()

        assert stats.total_documents == 2
        assert stats.vocabulary_size == 5
        assert stats.average_document_length == pytest.approx(2.5)

    def test_average_length_tracks_removals(self):
        idx = BM25Index()
        idx.index("a", "d", 0, "alpha beta gamma delta")
        idx.index("b", "d", 1, "epsilon zeta")
        idx.remove("a")

        assert idx.average_document_length == pytest.approx(2.0)

    def test_index_batch_from_chunks(self):
        idx = BM25Index()
        chunks = [
            Chunk.create("doc", 0, "retrieval augmented generation", ["ml"]),
            Chunk.create("doc", 1, "the of and"),
        ]

        assert idx.index_batch(chunks) == 1
        assert idx.contains(chunks[0].id)
        assert idx.search("generation", top_k=1, category_filter="ml")[0].id == chunks[0].id

    def test_replace_document_swaps_all_chunks(self):
        idx = BM25Index()
        idx.index_batch(
            [
                Chunk.create("doc", 0, "spring boot starter"),
                Chunk.create("doc", 1, "legacy servlet container"),
            ]
        )
        idx.index("other", "doc2", 0, "servlet filters")
        fresh = [Chunk.create("doc", 0, "quarkus native image")]

        assert idx.replace_document("doc", fresh) == 1
        assert idx.size == 2
        assert idx.search("spring", top_k=5) == []
        assert [hit.id for hit in idx.search("servlet", top_k=5)] == ["other"]
        assert idx.search("quarkus", top_k=5)[0].id == fresh[0].id

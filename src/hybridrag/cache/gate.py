"""
CacheGate: the caching policies of the engine behind one object.

- frequency gate in front of completion caching
- quality gate in front of answer caching
- unconditional embedding cache
"""

from typing import Any, Dict, Optional

from hybridrag.cache.completion import CachedCompletion
from hybridrag.cache.frequency import QuestionFrequencyTracker
from hybridrag.cache.query_cache import QueryResultCache, make_cache_key
from hybridrag.embeddings.cache import CachedEmbeddings, EmbeddingCache
from hybridrag.embeddings.client import EmbeddingsClient
from hybridrag.llm.base import CompletionClient
from hybridrag.models.search import QueryResult


class CacheGate:
    """
    Wraps the embedding and completion collaborators with their caches.

    Example:
        >>> gate = CacheGate(embeddings_client, completion_client)
        >>> vector = await gate.embeddings.embed("text")
        >>> frequent = gate.record_question("What is BM25?")
        >>> answer = await gate.completion.complete(prompt, 0.2, 256, cacheable=frequent)
    """

    def __init__(
        self,
        embeddings_client: EmbeddingsClient,
        completion_client: CompletionClient,
        frequency_threshold: int = 2,
        completion_max_size: int = 1000,
        query_max_size: int = 500,
        quality_min_score: float = 0.65,
        embedding_max_size: int = 2000,
    ) -> None:
        self.frequency = QuestionFrequencyTracker(threshold=frequency_threshold)
        self.completion = CachedCompletion(
            completion_client, tracker=self.frequency, max_size=completion_max_size
        )
        self.query_cache = QueryResultCache(max_size=query_max_size, min_score=quality_min_score)
        self.embedding_cache = EmbeddingCache(max_size=embedding_max_size)
        self.embeddings = CachedEmbeddings(embeddings_client, self.embedding_cache)

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        embeddings_client: EmbeddingsClient,
        completion_client: CompletionClient,
    ) -> "CacheGate":
        return cls(
            embeddings_client,
            completion_client,
            frequency_threshold=settings.get("cache.frequency_threshold", 2),
            completion_max_size=settings.get("cache.completion_max_size", 1000),
            query_max_size=settings.get("cache.query_max_size", 500),
            quality_min_score=settings.get("cache.quality_min_score", 0.65),
            embedding_max_size=settings.get("cache.embedding_max_size", 2000),
        )

    def record_question(self, question: str) -> bool:
        """Count an incoming question; True once it is frequent enough to cache."""
        return self.frequency.record_and_check(question)

    def lookup_answer(
        self, question: str, top_k: int, category: Optional[str] = None
    ) -> Optional[QueryResult]:
        return self.query_cache.get(make_cache_key(question, top_k, category))

    def admit_answer(
        self, question: str, top_k: int, category: Optional[str], result: QueryResult
    ) -> bool:
        return self.query_cache.admit(make_cache_key(question, top_k, category), result)

    def clear(self) -> None:
        self.frequency.clear()
        self.completion.clear()
        self.query_cache.clear()
        self.embedding_cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency.get_statistics().model_dump(),
            "completion_cache": {
                "size": self.completion.size,
                "max_size": self.completion.max_size,
                **self.completion.metrics.get_metrics(),
            },
            "query_cache": self.query_cache.get_stats(),
            "embedding_cache": dict(self.embedding_cache.get_stats()),
        }

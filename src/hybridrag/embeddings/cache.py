"""
Embedding cache.

Embeddings are a deterministic function of their input text, so every
result is cacheable: no frequency or quality gate applies here. Keys are
the SHA-256 of the exact text; entries are evicted least-recently-used
once ``max_size`` is reached.
"""

import hashlib
import threading
from collections import OrderedDict
from typing import List, Optional, TypedDict

from hybridrag.core.logging import logger
from hybridrag.core.tracing import MetricsCollector
from hybridrag.embeddings.client import EmbeddingsClient


class EmbeddingCacheStats(TypedDict):
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class EmbeddingCache:
    """Thread-safe LRU of text -> vector."""

    def __init__(self, max_size: int = 2000):
        self.max_size = max_size
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        logger.info("EmbeddingCache initialized", max_size=max_size)

    @staticmethod
    def _generate_key(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def get(self, text: str) -> Optional[List[float]]:
        key = self._generate_key(text)
        with self._lock:
            vector = self._cache.get(key)
            if vector is None:
                self._misses += 1
                return None
            self._cache.move_to_end(key)
            self._hits += 1
            return vector

    def set(self, text: str, vector: List[float]) -> None:
        if self.max_size <= 0:
            return
        key = self._generate_key(text)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
            self._cache[key] = list(vector)

    def clear(self) -> None:
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.info("Embedding cache cleared", removed=size)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> EmbeddingCacheStats:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }


class CachedEmbeddings:
    """
    EmbeddingsClient decorator that consults an EmbeddingCache first.

    Embedding failures propagate; only successful vectors are stored.
    """

    def __init__(
        self,
        client: EmbeddingsClient,
        cache: Optional[EmbeddingCache] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.cache = cache or EmbeddingCache()
        self.metrics = metrics or MetricsCollector("embeddings")

    async def embed(self, text: str) -> List[float]:
        cached = self.cache.get(text)
        if cached is not None:
            self.metrics.increment("cache.hits")
            return cached

        self.metrics.increment("cache.misses")
        vector = await self.client.embed(text)
        self.cache.set(text, vector)
        return vector

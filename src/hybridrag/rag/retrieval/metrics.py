"""
Retrieval-specific metrics.

Uses the core MetricsCollector (composition) to track search latency,
fusion overlap, ingestion throughput and answer cache efficiency.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict

from hybridrag.core.tracing import MetricsCollector
from hybridrag.core.logging import logger

# Latency samples kept per operation
MAX_SAMPLES = 1000


class RAGMetrics:
    """Metrics collector for retrieval operations."""

    def __init__(self) -> None:
        self.collector = MetricsCollector("rag")
        self._lock = threading.Lock()
        self.latencies: Dict[str, Deque[float]] = {}
        logger.info("RAGMetrics initialized")

    def _record_latency(self, operation: str, latency_ms: float) -> None:
        with self._lock:
            samples = self.latencies.setdefault(operation, deque(maxlen=MAX_SAMPLES))
            samples.append(latency_ms)

    def record_search(
        self,
        latency_ms: float,
        result_count: int,
        search_type: str = "hybrid",
        dense_count: int = 0,
        sparse_count: int = 0,
    ) -> None:
        """
        Record a search operation.

        Args:
            latency_ms: Search latency in milliseconds
            result_count: Number of results returned
            search_type: hybrid, dense or rerank
            dense_count: Hits returned by the vector store
            sparse_count: Hits returned by the BM25 index
        """
        self._record_latency(f"search_{search_type}", latency_ms)
        self.collector.increment(f"{search_type}_searches")
        self.collector.increment("total_chunks_returned", result_count)
        self.collector.increment("dense_hits", dense_count)
        self.collector.increment("sparse_hits", sparse_count)

        logger.debug(
            "Search recorded",
            search_type=search_type,
            latency_ms=latency_ms,
            result_count=result_count,
        )

    def record_ingest(self, latency_ms: float, chunk_count: int) -> None:
        self._record_latency("ingest", latency_ms)
        self.collector.increment("documents_ingested")
        self.collector.increment("chunks_ingested", chunk_count)

    def record_answer(self, latency_ms: float, cache_hit: bool, cached_after: bool) -> None:
        self._record_latency("answer", latency_ms)
        self.collector.increment("answers")
        self.collector.increment("answer_cache_hits" if cache_hit else "answer_cache_misses")
        if cached_after:
            self.collector.increment("answers_cached")

    def get_cache_hit_rate(self) -> float:
        hits = self.collector.get("answer_cache_hits")
        misses = self.collector.get("answer_cache_misses")
        total = hits + misses
        return hits / total if total else 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Counters plus average and p95 latency per operation."""
        with self._lock:
            latency_stats = {}
            for operation, samples in self.latencies.items():
                if not samples:
                    continue
                ordered = sorted(samples)
                latency_stats[operation] = {
                    "count": len(ordered),
                    "avg_ms": sum(ordered) / len(ordered),
                    "p95_ms": ordered[min(len(ordered) - 1, int(len(ordered) * 0.95))],
                }
        return {
            "counters": self.collector.get_metrics(),
            "latency": latency_stats,
            "answer_cache_hit_rate": self.get_cache_hit_rate(),
        }

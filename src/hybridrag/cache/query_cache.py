"""
Quality-gated cache of complete RAG answers.

An answer computed from poor context may become answerable once more
documents are ingested, so it is only admitted when:

1. at least one source exists
2. the top source relevance reaches ``min_score``
3. the answer is not a "no information" answer

The cache is bounded; once full, new results are simply not cached.
"""

import re
import threading
from typing import Dict, Optional

from hybridrag.core.logging import logger
from hybridrag.core.tracing import MetricsCollector
from hybridrag.models.search import QueryResult

DEFAULT_MIN_SCORE = 0.65
DEFAULT_MAX_SIZE = 500

NO_INFORMATION_PHRASES = (
    "i don't know",
    "i do not know",
    "no information",
    "don't have information",
    "not in the context",
    "context does not provide",
    "cannot find",
    "is not available",
    "there is no",
)

_NOT_FOUND_ANSWER = re.compile(r"^(i don't know|unknown|not found)\.?$")


def is_no_information_answer(answer: Optional[str]) -> bool:
    """True for blank answers and answers that say nothing was found."""
    if answer is None or not answer.strip():
        return True
    lowered = answer.strip().lower()
    if any(phrase in lowered for phrase in NO_INFORMATION_PHRASES):
        return True
    return bool(_NOT_FOUND_ANSWER.match(lowered))


def make_cache_key(question: str, top_k: int, category: Optional[str] = None) -> str:
    """``question.lower().strip() | top_k | category``. Category case is kept."""
    return f"{question.lower().strip()}|{top_k}|{category or ''}"


class QueryResultCache:
    """Bounded, thread-safe map of cache key -> QueryResult."""

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, min_score: float = DEFAULT_MIN_SCORE):
        self.max_size = max_size
        self.min_score = min_score
        self._results: Dict[str, QueryResult] = {}
        self._lock = threading.Lock()
        self.metrics = MetricsCollector("query_cache")

    def get(self, key: str) -> Optional[QueryResult]:
        with self._lock:
            result = self._results.get(key)
        if result is None:
            self.metrics.increment("misses")
            return None
        self.metrics.increment("hits")
        return result.model_copy(update={"cached": True})

    def rejection_reason(self, result: QueryResult) -> Optional[str]:
        """Why ``result`` fails the quality gate, or None when it passes."""
        if not result.sources:
            return "no_sources"
        if result.top_score < self.min_score:
            return "low_relevance"
        if is_no_information_answer(result.answer):
            return "no_information"
        return None

    def admit(self, key: str, result: QueryResult) -> bool:
        """
        Store ``result`` if it passes the quality gate and there is room.

        Returns:
            True when the result was stored.
        """
        reason = self.rejection_reason(result)
        if reason is not None:
            self.metrics.increment(f"rejected.{reason}")
            logger.debug(
                "Answer not cached", reason=reason, top_score=result.top_score, key=key[:80]
            )
            return False

        with self._lock:
            if key not in self._results and len(self._results) >= self.max_size:
                full = True
            else:
                full = False
                self._results[key] = result.model_copy(update={"cached": False})

        if full:
            self.metrics.increment("rejected.full")
            logger.debug("Query cache full, skipping", max_size=self.max_size)
            return False
        return True

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def get_stats(self) -> Dict[str, float]:
        stats = self.metrics.get_metrics()
        stats["size"] = self.size
        stats["max_size"] = self.max_size
        return stats

"""
Frequency-gated completion cache.
"""

import threading
from collections import OrderedDict
from typing import Optional

from hybridrag.cache.frequency import QuestionFrequencyTracker
from hybridrag.core.logging import logger
from hybridrag.core.tracing import MetricsCollector
from hybridrag.llm.base import CompletionClient

DEFAULT_MAX_SIZE = 1000

_ERROR_MARKERS = ("error", "failed")


def is_cacheable_response(response: Optional[str]) -> bool:
    """Empty responses and responses that look like error text are never stored."""
    if not response or not response.strip():
        return False
    lowered = response.lower()
    return not any(marker in lowered for marker in _ERROR_MARKERS)


class CachedCompletion:
    """
    CompletionClient decorator.

    Only prompts whose question has reached the frequency threshold are
    served from, or written to, the cache. Below the threshold every call
    goes to the wrapped client.
    """

    def __init__(
        self,
        client: CompletionClient,
        tracker: Optional[QuestionFrequencyTracker] = None,
        max_size: int = DEFAULT_MAX_SIZE,
    ) -> None:
        self.client = client
        self.tracker = tracker or QuestionFrequencyTracker()
        self.max_size = max_size
        self._cache: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()
        self.metrics = MetricsCollector("completion_cache")

    @staticmethod
    def _key(prompt: str, temperature: float, max_tokens: int) -> str:
        return f"{temperature}|{max_tokens}|{prompt}"

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 256,
        cacheable: Optional[bool] = None,
    ) -> str:
        """
        Complete ``prompt``.

        Args:
            cacheable: Frequency decision already taken by the caller. When
                None the prompt itself is counted by the tracker.
        """
        if cacheable is None:
            cacheable = self.tracker.record_and_check(prompt)

        key = self._key(prompt, temperature, max_tokens)
        if cacheable:
            with self._lock:
                cached = self._cache.get(key)
                if cached is not None:
                    self._cache.move_to_end(key)
            if cached is not None:
                self.metrics.increment("hits")
                return cached
            self.metrics.increment("misses")
        else:
            self.metrics.increment("bypassed")

        response = await self.client.complete(prompt, temperature=temperature, max_tokens=max_tokens)

        if cacheable:
            self._store(key, response)
        return response

    def _store(self, key: str, response: str) -> None:
        if self.max_size <= 0 or not is_cacheable_response(response):
            logger.debug("Completion not cached", length=len(response or ""))
            return
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
            self._cache[key] = response

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

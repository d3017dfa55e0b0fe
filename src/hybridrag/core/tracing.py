"""
Local observability.

Spans and counters for debugging, without external telemetry.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Any, Optional, Iterator

from hybridrag.core.logging import AsyncLogger
from hybridrag.core.id_generator import generate_id


class LocalTracer:
    """
    Simple local tracing.

    LocalTracer records individual spans with duration and attributes;
    MetricsCollector keeps aggregated counters and gauges.
    """

    def __init__(self, service_name: str = "hybridrag") -> None:
        self.service_name = service_name
        self.logger = AsyncLogger("tracing")

    @contextmanager
    def span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        """
        Measure the wrapped block.

        Usage:
        ```
        with tracer.span("hybrid_search", {"top_k": 5}):
            results = await search.search(query, 5)
        ```
        """
        span_id = generate_id()
        start = time.perf_counter()

        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.debug(
                f"Span completed: {name}",
                span_id=span_id,
                duration_ms=duration * 1000,
                **(attributes or {}),
            )


class MetricsCollector:
    """
    Local metrics collector.

    Only for internal monitoring, without export.
    """

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace
        self.metrics: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _key(self, name: str) -> str:
        return f"{self.namespace}.{name}" if self.namespace else name

    def increment(self, name: str, value: float = 1.0) -> None:
        """Increment a counter."""
        key = self._key(name)
        with self._lock:
            self.metrics[key] = self.metrics.get(key, 0) + value

    def gauge(self, name: str, value: float) -> None:
        """Set the current value."""
        with self._lock:
            self.metrics[self._key(name)] = value

    def record(self, name: str, value: float) -> None:
        """Record a measurement (alias of gauge)."""
        self.gauge(name, value)

    def get(self, name: str, default: float = 0.0) -> float:
        with self._lock:
            return self.metrics.get(self._key(name), default)

    def get_metrics(self) -> Dict[str, float]:
        """All metrics."""
        with self._lock:
            return self.metrics.copy()


tracer = LocalTracer()

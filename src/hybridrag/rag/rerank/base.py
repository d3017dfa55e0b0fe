"""
Second-stage re-ranking of fused candidates.

A backend is chosen once, at construction, from a closed set of providers.
Whatever the backend does, ``Reranker.rerank`` never raises because of
it: any provider failure degrades to passthrough, which keeps the input
order and reuses the initial scores.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from hybridrag.core.exceptions import RerankError
from hybridrag.core.logging import logger
from hybridrag.core.tracing import MetricsCollector
from hybridrag.models.search import RerankCandidate, RerankResult


class RerankProvider(str, Enum):
    LOCAL = "local"
    COHERE = "cohere"
    JINA = "jina"
    LLM = "llm"
    CROSS_ENCODER = "cross_encoder"
    DISABLED = "disabled"


@dataclass
class RerankConfig:
    enabled: bool = False
    provider: RerankProvider = RerankProvider.LOCAL
    base_url: str = "http://localhost:8001"
    model: str = "bge-reranker-base"
    api_key: str = ""
    candidate_count: int = 50
    min_score: float = 0.0
    timeout_seconds: float = 30.0
    batch_size: int = 32

    @classmethod
    def from_settings(cls, settings: Any) -> "RerankConfig":
        section: Dict[str, Any] = settings.get("rerank", {}) or {}
        return cls(
            enabled=bool(section.get("enabled", False)),
            provider=RerankProvider(section.get("provider", "local")),
            base_url=section.get("base_url", cls.base_url),
            model=section.get("model", cls.model),
            api_key=section.get("api_key") or "",
            candidate_count=int(section.get("candidate_count", cls.candidate_count)),
            min_score=float(section.get("min_score", cls.min_score)),
            timeout_seconds=float(section.get("timeout_seconds", cls.timeout_seconds)),
            batch_size=int(section.get("batch_size", cls.batch_size)),
        )

    @property
    def active(self) -> bool:
        return self.enabled and self.provider != RerankProvider.DISABLED


class RerankBackend(Protocol):
    """
    Scores candidates against a query.

    Returns ``(index into candidates, relevance score)`` pairs. Implementations
    raise on any provider failure; they never fall back themselves.
    """

    name: str

    async def score(
        self, query: str, candidates: Sequence[RerankCandidate], top_k: int
    ) -> List[Tuple[int, float]]: ...


def _validate_pairs(
    scored: Sequence[Tuple[int, float]], size: int
) -> List[Tuple[int, float]]:
    """Reject out-of-range indexes; keep the first score for a repeated index."""
    seen = set()
    pairs: List[Tuple[int, float]] = []
    for index, score in scored:
        if not isinstance(index, int) or not 0 <= index < size:
            raise RerankError(
                f"Provider returned index {index!r} for {size} candidates",
                context={"index": index, "size": size},
            )
        if index not in seen:
            seen.add(index)
            pairs.append((index, float(score)))
    return pairs


def passthrough(candidates: Sequence[RerankCandidate], top_k: int) -> List[RerankResult]:
    """Original order, ``rerank_score = initial_score``, no score floor."""
    return [
        RerankResult(
            id=c.id,
            text=c.text,
            rerank_score=c.initial_score,
            initial_score=c.initial_score,
            original_rank=i,
            new_rank=i,
            metadata=dict(c.metadata),
        )
        for i, c in enumerate(candidates[: max(top_k, 0)])
    ]


class Reranker:
    """
    Facade over the configured backend.

    Example:
        >>> reranker = Reranker(RerankConfig(enabled=False))
        >>> results = await reranker.rerank("query", candidates, top_k=5)
    """

    def __init__(
        self,
        config: Optional[RerankConfig] = None,
        backend: Optional[RerankBackend] = None,
        metrics: Optional[MetricsCollector] = None,
        completion_client: Optional[Any] = None,
    ) -> None:
        self.config = config or RerankConfig()
        self.metrics = metrics or MetricsCollector("rerank")
        if backend is not None:
            self.backend: Optional[RerankBackend] = backend
        elif self.config.active:
            from hybridrag.rag.rerank.factory import create_backend

            self.backend = create_backend(self.config, completion_client)
        else:
            self.backend = None

        logger.info(
            "Reranker initialized",
            enabled=self.is_enabled,
            provider=self.config.provider.value,
            model=self.config.model,
        )

    @property
    def is_enabled(self) -> bool:
        return self.backend is not None

    @property
    def candidate_count(self) -> int:
        """How many fused candidates callers should feed in."""
        return self.config.candidate_count

    async def rerank(
        self, query: str, candidates: Sequence[RerankCandidate], top_k: int
    ) -> List[RerankResult]:
        """
        Re-order ``candidates`` by relevance to ``query``.

        Returns at most ``top_k`` results with dense 0-based ``new_rank``.
        Results from a working provider all satisfy
        ``rerank_score >= min_score``; passthrough results do not apply the
        floor.
        """
        if not candidates or top_k <= 0:
            return []
        if self.backend is None:
            return passthrough(candidates, top_k)

        try:
            scored = await self.backend.score(query, candidates, top_k)
            scored = _validate_pairs(scored, len(candidates))
        except Exception as e:
            self.metrics.increment("fallbacks")
            logger.warning(
                "Rerank failed, using original order",
                provider=self.backend.name,
                error=str(e),
                candidates=len(candidates),
            )
            return passthrough(candidates, top_k)

        self.metrics.increment("requests")
        return self._build_results(candidates, scored, top_k)

    def _build_results(
        self,
        candidates: Sequence[RerankCandidate],
        scored: List[Tuple[int, float]],
        top_k: int,
    ) -> List[RerankResult]:
        ranked = sorted(scored, key=lambda pair: pair[1], reverse=True)
        results: List[RerankResult] = []
        for index, score in ranked:
            if score < self.config.min_score:
                continue
            candidate = candidates[index]
            results.append(
                RerankResult(
                    id=candidate.id,
                    text=candidate.text,
                    rerank_score=score,
                    initial_score=candidate.initial_score,
                    original_rank=index,
                    new_rank=len(results),
                    metadata=dict(candidate.metadata),
                )
            )
            if len(results) >= top_k:
                break

        logger.debug(
            "Rerank completed",
            provider=self.backend.name if self.backend else "passthrough",
            candidates=len(candidates),
            returned=len(results),
        )
        return results

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.is_enabled,
            "provider": self.config.provider.value,
            "model": self.config.model,
            "candidate_count": self.config.candidate_count,
            "min_score": self.config.min_score,
            "fallbacks": self.metrics.get("fallbacks"),
        }

"""
Rank fusion of dense and sparse result lists.

Three strategies are available:
- plain Reciprocal Rank Fusion: ``1 / (k + rank)``
- weighted RRF: ``(w / (w_dense + w_sparse)) / (k + rank)``
- linear combination of min-max normalized scores

Rank is 1-based. Every strategy keeps both raw scores and the membership
flags, and sorts by fused score with ties kept in first-seen order
(dense list first, then sparse).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence, Tuple

from hybridrag.core.exceptions import ValidationError
from hybridrag.core.logging import logger
from hybridrag.models.search import FusedResult, SearchHit

DEFAULT_RRF_K = 60.0


class FusionStrategy(str, Enum):
    RRF = "rrf"
    WEIGHTED_RRF = "weighted_rrf"
    LINEAR = "linear"


@dataclass
class _Accumulator:
    hit: SearchHit
    fused: float = 0.0
    dense_score: float = 0.0
    sparse_score: float = 0.0
    in_dense: bool = False
    in_sparse: bool = False

    def to_result(self) -> FusedResult:
        return FusedResult(
            id=self.hit.id,
            document_id=self.hit.document_id,
            chunk_index=self.hit.chunk_index,
            text=self.hit.text,
            fused_score=self.fused,
            dense_score=self.dense_score,
            sparse_score=self.sparse_score,
            in_dense=self.in_dense,
            in_sparse=self.in_sparse,
        )


def _first_occurrences(hits: Sequence[SearchHit]) -> List[SearchHit]:
    """Drop repeated ids, keeping the first (best ranked) occurrence."""
    seen = set()
    unique = []
    for hit in hits:
        if hit.id not in seen:
            seen.add(hit.id)
            unique.append(hit)
    return unique


class FusionEngine:
    """
    Merge dense and sparse hits into one ranking.

    Example:
        >>> engine = FusionEngine(rrf_k=60)
        >>> fused = engine.fuse_rrf(dense_hits, sparse_hits, top_k=5)
    """

    def __init__(self, rrf_k: float = DEFAULT_RRF_K):
        if rrf_k <= 0:
            raise ValidationError("rrf_k must be positive", context={"rrf_k": rrf_k})
        self.rrf_k = float(rrf_k)

    def fuse(
        self,
        dense: Sequence[SearchHit],
        sparse: Sequence[SearchHit],
        top_k: int,
        strategy: FusionStrategy = FusionStrategy.WEIGHTED_RRF,
        dense_weight: float = 0.7,
        sparse_weight: float = 0.3,
        alpha: float = 0.5,
    ) -> List[FusedResult]:
        """Dispatch to the requested strategy."""
        strategy = FusionStrategy(strategy)
        if strategy == FusionStrategy.RRF:
            return self.fuse_rrf(dense, sparse, top_k)
        if strategy == FusionStrategy.WEIGHTED_RRF:
            return self.fuse_weighted_rrf(dense, sparse, dense_weight, sparse_weight, top_k)
        return self.fuse_linear(dense, sparse, alpha, top_k)

    def fuse_rrf(
        self, dense: Sequence[SearchHit], sparse: Sequence[SearchHit], top_k: int
    ) -> List[FusedResult]:
        """Plain RRF, both lists weighted equally."""
        return self._fuse_reciprocal(dense, sparse, 1.0, 1.0, top_k)

    def fuse_weighted_rrf(
        self,
        dense: Sequence[SearchHit],
        sparse: Sequence[SearchHit],
        dense_weight: float,
        sparse_weight: float,
        top_k: int,
    ) -> List[FusedResult]:
        """
        RRF with per-list weights.

        Weights are normalized by their sum, so (0.7, 0.3) and (7, 3) are
        equivalent.
        """
        total = dense_weight + sparse_weight
        if dense_weight < 0 or sparse_weight < 0 or total <= 0:
            raise ValidationError(
                "Fusion weights must be non-negative with a positive sum",
                context={"dense_weight": dense_weight, "sparse_weight": sparse_weight},
            )
        return self._fuse_reciprocal(
            dense, sparse, dense_weight / total, sparse_weight / total, top_k
        )

    def fuse_linear(
        self,
        dense: Sequence[SearchHit],
        sparse: Sequence[SearchHit],
        alpha: float,
        top_k: int,
    ) -> List[FusedResult]:
        """
        ``alpha * dense_norm + (1 - alpha) * sparse_norm``.

        Each list is min-max normalized on its own; when every score in a
        list is equal the normalized value is 1.0. A side that did not
        return the chunk contributes 0.
        """
        if not 0.0 <= alpha <= 1.0:
            raise ValidationError("alpha must be in [0, 1]", context={"alpha": alpha})

        dense = _first_occurrences(dense)
        sparse = _first_occurrences(sparse)
        merged: Dict[str, _Accumulator] = {}

        for hit, norm in zip(dense, self._min_max(dense)):
            acc = merged.setdefault(hit.id, _Accumulator(hit=hit))
            acc.fused += alpha * norm
            acc.dense_score = hit.score
            acc.in_dense = True

        for hit, norm in zip(sparse, self._min_max(sparse)):
            acc = merged.setdefault(hit.id, _Accumulator(hit=hit))
            acc.fused += (1 - alpha) * norm
            acc.sparse_score = hit.score
            acc.in_sparse = True

        return self._finish(merged, top_k, "linear")

    def _fuse_reciprocal(
        self,
        dense: Sequence[SearchHit],
        sparse: Sequence[SearchHit],
        dense_weight: float,
        sparse_weight: float,
        top_k: int,
    ) -> List[FusedResult]:
        merged: Dict[str, _Accumulator] = {}

        for rank, hit in enumerate(_first_occurrences(dense), start=1):
            acc = merged.setdefault(hit.id, _Accumulator(hit=hit))
            acc.fused += dense_weight / (self.rrf_k + rank)
            acc.dense_score = hit.score
            acc.in_dense = True

        for rank, hit in enumerate(_first_occurrences(sparse), start=1):
            acc = merged.setdefault(hit.id, _Accumulator(hit=hit))
            acc.fused += sparse_weight / (self.rrf_k + rank)
            acc.sparse_score = hit.score
            acc.in_sparse = True

        return self._finish(merged, top_k, "rrf")

    @staticmethod
    def _min_max(hits: Sequence[SearchHit]) -> List[float]:
        if not hits:
            return []
        scores = [h.score for h in hits]
        low, high = min(scores), max(scores)
        spread = high - low
        if spread == 0:
            return [1.0] * len(scores)
        return [(s - low) / spread for s in scores]

    @staticmethod
    def _finish(
        merged: Dict[str, _Accumulator], top_k: int, strategy: str
    ) -> List[FusedResult]:
        if top_k <= 0:
            return []
        # sorted() is stable, so equal scores keep first-seen order
        ranked = sorted(merged.values(), key=lambda acc: acc.fused, reverse=True)[:top_k]

        counts: Tuple[int, int, int] = (
            sum(1 for a in merged.values() if a.in_dense and a.in_sparse),
            sum(1 for a in merged.values() if a.in_dense and not a.in_sparse),
            sum(1 for a in merged.values() if a.in_sparse and not a.in_dense),
        )
        logger.debug(
            "Results fused",
            strategy=strategy,
            both=counts[0],
            dense_only=counts[1],
            sparse_only=counts[2],
            returned=len(ranked),
        )
        return [acc.to_result() for acc in ranked]

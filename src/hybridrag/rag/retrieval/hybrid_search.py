"""
Hybrid search: dense vectors plus BM25, merged by rank fusion.

Both retrievers receive the same query text and are asked for
``top_k * 2`` hits so fusion has room to promote chunks that only one
side ranks highly. Dense failures propagate as ExternalServiceError; a
silently lexical-only answer would hide an outage.
"""

import time
from typing import Any, List, Optional

from hybridrag.core.exceptions import ValidationError
from hybridrag.core.logging import logger
from hybridrag.core.tracing import tracer
from hybridrag.embeddings.client import EmbeddingsClient
from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.models.search import FusedResult, SearchHit
from hybridrag.rag.retrieval.fusion import FusionEngine, FusionStrategy
from hybridrag.rag.retrieval.lexical_index import BM25Index
from hybridrag.rag.retrieval.metrics import RAGMetrics
from hybridrag.vectorstore.base import VectorStore


class HybridSearch:
    """
    Runs both retrieval signals and fuses them.

    With ``enabled=False`` only the vector store is queried and its hits are
    returned as FusedResults whose fused score is the dense score.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        lexical_index: BM25Index,
        embeddings: EmbeddingsClient,
        fusion: Optional[FusionEngine] = None,
        strategy: FusionStrategy = FusionStrategy.WEIGHTED_RRF,
        dense_weight: float = 0.7,
        sparse_weight: float = 0.3,
        linear_alpha: float = 0.5,
        enabled: bool = True,
        metrics: Optional[RAGMetrics] = None,
    ) -> None:
        self.vector_store = vector_store
        self.lexical_index = lexical_index
        self.embeddings = embeddings
        self.fusion = fusion or FusionEngine()
        self.strategy = FusionStrategy(strategy)
        self.enabled = enabled
        self.linear_alpha = linear_alpha
        self.metrics = metrics or RAGMetrics()

        total_weight = dense_weight + sparse_weight
        if total_weight <= 0:
            raise ValidationError(
                "Fusion weights must have a positive sum",
                context={"dense_weight": dense_weight, "sparse_weight": sparse_weight},
            )
        if abs(total_weight - 1.0) > 0.001:
            logger.warning("Weights don't sum to 1.0, normalizing", total_weight=total_weight)
        self.dense_weight = dense_weight / total_weight
        self.sparse_weight = sparse_weight / total_weight

        logger.info(
            "HybridSearch initialized",
            enabled=enabled,
            strategy=self.strategy.value,
            dense_weight=self.dense_weight,
            sparse_weight=self.sparse_weight,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        vector_store: VectorStore,
        lexical_index: BM25Index,
        embeddings: EmbeddingsClient,
        metrics: Optional[RAGMetrics] = None,
    ) -> "HybridSearch":
        return cls(
            vector_store,
            lexical_index,
            embeddings,
            fusion=FusionEngine(rrf_k=settings.get("hybrid.rrf_k", 60.0)),
            strategy=FusionStrategy(settings.get("hybrid.strategy", "weighted_rrf")),
            dense_weight=settings.get("hybrid.dense_weight", 0.7),
            sparse_weight=settings.get("hybrid.sparse_weight", 0.3),
            linear_alpha=settings.get("hybrid.linear_alpha", 0.5),
            enabled=settings.get("hybrid.enabled", True),
            metrics=metrics,
        )

    async def search(
        self, query: str, top_k: int, category_filter: Optional[str] = None
    ) -> List[FusedResult]:
        """
        Retrieve and fuse.

        Args:
            query: Search text, must not be blank
            top_k: Maximum fused results
            category_filter: Restrict both retrievers to one category

        Returns:
            Fused results, best first
        """
        if not query or not query.strip():
            raise ValidationError("Query must not be blank", context={"field": "query"})
        if top_k <= 0:
            return []

        start = time.perf_counter()
        limit = top_k * 2

        with tracer.span("hybrid_search", {"top_k": top_k, "category": category_filter or ""}):
            dense = await self.dense_search(query, limit, category_filter)

            if not self.enabled:
                results = [self._dense_only(hit) for hit in dense[:top_k]]
                self.metrics.record_search(
                    (time.perf_counter() - start) * 1000,
                    len(results),
                    search_type="dense",
                    dense_count=len(dense),
                )
                return results

            sparse = self.lexical_index.search(query, limit, category_filter)
            results = self.fusion.fuse(
                dense,
                sparse,
                top_k,
                strategy=self.strategy,
                dense_weight=self.dense_weight,
                sparse_weight=self.sparse_weight,
                alpha=self.linear_alpha,
            )

        latency_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_search(
            latency_ms,
            len(results),
            search_type="hybrid",
            dense_count=len(dense),
            sparse_count=len(sparse),
        )
        logger.debug(
            "Search completed",
            query=query[:50],
            dense=len(dense),
            sparse=len(sparse),
            returned=len(results),
            latency_ms=latency_ms,
        )
        return results

    async def dense_search(
        self, query: str, limit: int, category_filter: Optional[str] = None
    ) -> List[SearchHit]:
        vector = EmbeddingVector(await self.embeddings.embed(query))
        return await self.vector_store.search(vector, limit, category_filter)

    @staticmethod
    def _dense_only(hit: SearchHit) -> FusedResult:
        return FusedResult(
            id=hit.id,
            document_id=hit.document_id,
            chunk_index=hit.chunk_index,
            text=hit.text,
            fused_score=hit.score,
            dense_score=hit.score,
            in_dense=True,
        )

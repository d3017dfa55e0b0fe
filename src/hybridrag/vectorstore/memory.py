"""
In-process vector store backed by numpy.

Used by the tests and by the CLI ``--memory`` mode.
"""

import asyncio
import threading
from typing import Collection, Dict, List, Optional, Sequence

import numpy as np

from hybridrag.core.logging import logger
from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.models.search import SearchHit
from hybridrag.vectorstore.base import VectorPoint


class InMemoryVectorStore:
    """Brute-force cosine similarity over every stored point."""

    def __init__(self) -> None:
        self._points: Dict[str, VectorPoint] = {}
        self._lock = threading.Lock()

    async def upsert(self, points: Sequence[VectorPoint]) -> None:
        with self._lock:
            for point in points:
                self._points[point.id] = point
        logger.debug("Points upserted", count=len(points), total=len(self._points))

    async def search(
        self, vector: EmbeddingVector, top_k: int, category_filter: Optional[str] = None
    ) -> List[SearchHit]:
        return await asyncio.to_thread(self._search_sync, vector, top_k, category_filter)

    def _search_sync(
        self, vector: EmbeddingVector, top_k: int, category_filter: Optional[str]
    ) -> List[SearchHit]:
        with self._lock:
            candidates = [
                p
                for p in self._points.values()
                if not category_filter or category_filter in p.categories
            ]
        if not candidates or top_k <= 0:
            return []

        matrix = np.stack([p.vector.numpy for p in candidates])
        scores = matrix @ vector.numpy
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [
            SearchHit(
                id=candidates[i].id,
                document_id=candidates[i].document_id,
                chunk_index=candidates[i].chunk_index,
                text=candidates[i].text,
                score=float(scores[i]),
            )
            for i in order
        ]

    async def delete_by_document_id(
        self, document_id: str, keep_ids: Optional[Collection[str]] = None
    ) -> int:
        keep = set(keep_ids or ())
        with self._lock:
            ids = [
                pid
                for pid, p in self._points.items()
                if p.document_id == document_id and pid not in keep
            ]
            for pid in ids:
                del self._points[pid]
        return len(ids)

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

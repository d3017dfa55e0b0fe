"""
Weaviate vector store (client v3).

The v3 client is synchronous, so every call runs in a worker thread.
"""

import asyncio
import uuid
from typing import Any, Collection, Dict, List, Optional, Sequence

import weaviate

from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.core.logging import logger
from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.models.search import SearchHit
from hybridrag.vectorstore.base import VectorPoint

_PROPERTIES = ["chunk_id", "document_id", "chunk_index", "text", "categories"]


class WeaviateVectorStore:
    """
    Stores chunk vectors in a Weaviate class with ``vectorizer: none``.

    Object uuids are derived from the hex32 chunk id, so upserting the same
    chunk twice overwrites the same object.
    """

    def __init__(
        self,
        url: str = "http://localhost:8080",
        class_name: str = "HybridChunk",
        timeout_seconds: float = 30.0,
        batch_size: int = 64,
        client: Optional[Any] = None,
    ) -> None:
        self.url = url
        self.class_name = class_name
        self.batch_size = batch_size
        self.client = client or weaviate.Client(
            url, timeout_config=(timeout_seconds, timeout_seconds)
        )
        self._schema_ready = False
        logger.info("WeaviateVectorStore ready", url=url, class_name=class_name)

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        if not self.client.schema.exists(self.class_name):
            self.client.schema.create_class(
                {
                    "class": self.class_name,
                    "vectorizer": "none",
                    "vectorIndexConfig": {"distance": "cosine"},
                    "properties": [
                        {"name": "chunk_id", "dataType": ["text"]},
                        {"name": "document_id", "dataType": ["text"]},
                        {"name": "chunk_index", "dataType": ["int"]},
                        {"name": "text", "dataType": ["text"]},
                        {"name": "categories", "dataType": ["text[]"]},
                    ],
                }
            )
            logger.info("Weaviate class created", class_name=self.class_name)
        self._schema_ready = True

    async def upsert(self, points: Sequence[VectorPoint]) -> None:
        if not points:
            return
        try:
            await asyncio.to_thread(self._upsert_sync, points)
        except Exception as e:
            logger.error("Failed to upsert to Weaviate", count=len(points), error=str(e))
            raise ExternalServiceError(
                f"Failed to upsert to Weaviate: {e}",
                code="VECTOR_STORE_UPSERT_FAILED",
                context={"url": self.url, "class_name": self.class_name},
                cause=e,
            ) from e

    def _upsert_sync(self, points: Sequence[VectorPoint]) -> None:
        self._ensure_schema()
        self.client.batch.configure(batch_size=self.batch_size)
        with self.client.batch as batch:
            for point in points:
                batch.add_data_object(
                    data_object={
                        "chunk_id": point.id,
                        "document_id": point.document_id,
                        "chunk_index": point.chunk_index,
                        "text": point.text,
                        "categories": point.categories,
                    },
                    class_name=self.class_name,
                    uuid=str(uuid.UUID(hex=point.id)),
                    vector=point.vector.to_weaviate(),
                )

    async def search(
        self, vector: EmbeddingVector, top_k: int, category_filter: Optional[str] = None
    ) -> List[SearchHit]:
        if top_k <= 0:
            return []
        try:
            result = await asyncio.to_thread(self._search_sync, vector, top_k, category_filter)
        except Exception as e:
            logger.error("Weaviate search failed", error=str(e))
            raise ExternalServiceError(
                f"Weaviate search failed: {e}",
                code="VECTOR_STORE_SEARCH_FAILED",
                context={"url": self.url, "class_name": self.class_name},
                cause=e,
            ) from e

        if result.get("errors"):
            raise ExternalServiceError(
                "Weaviate search returned errors",
                code="VECTOR_STORE_SEARCH_FAILED",
                context={"errors": result["errors"]},
            )

        items = result.get("data", {}).get("Get", {}).get(self.class_name) or []
        hits = []
        for item in items:
            distance = item.get("_additional", {}).get("distance")
            hits.append(
                SearchHit(
                    id=item.get("chunk_id", ""),
                    document_id=item.get("document_id", ""),
                    chunk_index=int(item.get("chunk_index") or 0),
                    text=item.get("text", ""),
                    # cosine distance -> cosine similarity
                    score=1.0 - float(distance) if distance is not None else 0.0,
                )
            )
        return hits

    def _search_sync(
        self, vector: EmbeddingVector, top_k: int, category_filter: Optional[str]
    ) -> Dict[str, Any]:
        self._ensure_schema()
        query_builder = (
            self.client.query.get(self.class_name, _PROPERTIES)
            .with_near_vector({"vector": vector.to_weaviate()})
            .with_limit(top_k)
            .with_additional(["distance"])
        )
        if category_filter:
            query_builder = query_builder.with_where(
                {
                    "path": ["categories"],
                    "operator": "ContainsAny",
                    "valueTextArray": [category_filter],
                }
            )
        return query_builder.do()

    async def delete_by_document_id(
        self, document_id: str, keep_ids: Optional[Collection[str]] = None
    ) -> int:
        try:
            result = await asyncio.to_thread(self._delete_sync, document_id, keep_ids or ())
        except Exception as e:
            logger.error("Weaviate delete failed", document_id=document_id, error=str(e))
            raise ExternalServiceError(
                f"Weaviate delete failed: {e}",
                code="VECTOR_STORE_DELETE_FAILED",
                context={"document_id": document_id},
                cause=e,
            ) from e
        deleted = int((result or {}).get("results", {}).get("successful", 0))
        logger.info("Document deleted from Weaviate", document_id=document_id, deleted=deleted)
        return deleted

    def _delete_sync(self, document_id: str, keep_ids: Collection[str]) -> Dict[str, Any]:
        self._ensure_schema()
        where: Dict[str, Any] = {
            "path": ["document_id"],
            "operator": "Equal",
            "valueText": document_id,
        }
        if keep_ids:
            where = {
                "operator": "And",
                "operands": [where]
                + [
                    {"path": ["chunk_id"], "operator": "NotEqual", "valueText": chunk_id}
                    for chunk_id in sorted(keep_ids)
                ],
            }
        return self.client.batch.delete_objects(class_name=self.class_name, where=where)

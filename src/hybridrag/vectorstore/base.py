"""
Vector store protocol.
"""

from dataclasses import dataclass, field
from typing import Collection, List, Optional, Protocol, Sequence, runtime_checkable

from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.models.search import SearchHit


@dataclass
class VectorPoint:
    """One chunk vector plus the payload the store returns on search."""

    id: str
    vector: EmbeddingVector
    document_id: str
    chunk_index: int
    text: str
    categories: List[str] = field(default_factory=list)


@runtime_checkable
class VectorStore(Protocol):
    """
    Dense retrieval backend.

    ``search`` returns hits ordered by cosine similarity, highest first.
    """

    async def upsert(self, points: Sequence[VectorPoint]) -> None: ...

    async def search(
        self, vector: EmbeddingVector, top_k: int, category_filter: Optional[str] = None
    ) -> List[SearchHit]: ...

    async def delete_by_document_id(
        self, document_id: str, keep_ids: Optional[Collection[str]] = None
    ) -> int:
        """Delete the points of a document, sparing ids in ``keep_ids``."""
        ...

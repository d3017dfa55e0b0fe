"""
Chunk model.
Unit of text that is indexed lexically and densely.
"""

from typing import List
from pydantic import ConfigDict, Field

from hybridrag.core.id_generator import stable_chunk_id
from hybridrag.models.base import HybridRagBaseModel


class Chunk(HybridRagBaseModel):
    """
    Immutable piece of a document.

    The id is derived from (document_id, chunk_index, text), so ingesting
    identical content twice produces the same id.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=32, max_length=32, description="Deterministic hex32 id")
    document_id: str = Field(..., min_length=1, description="Owning document")
    chunk_index: int = Field(..., ge=0, description="Position within the document")
    text: str = Field(..., description="Chunk text")
    categories: List[str] = Field(default_factory=list, description="Category tags")

    @classmethod
    def create(
        cls,
        document_id: str,
        chunk_index: int,
        text: str,
        categories: List[str] | None = None,
    ) -> "Chunk":
        """Build a chunk with its deterministic id."""
        return cls(
            id=stable_chunk_id(document_id, chunk_index, text),
            document_id=document_id,
            chunk_index=chunk_index,
            text=text,
            categories=list(categories or []),
        )

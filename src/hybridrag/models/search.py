"""
Retrieval, fusion and rerank records.
"""

from typing import Any, Dict, List
from pydantic import Field

from hybridrag.models.base import HybridRagBaseModel


class SearchHit(HybridRagBaseModel):
    """
    Hit from a single retriever.

    ``score`` is the native metric of the retriever: unbounded BM25 for the
    lexical index, cosine similarity or certainty for the vector store.
    """

    id: str
    document_id: str
    chunk_index: int = Field(..., ge=0)
    text: str
    score: float


class FusedResult(HybridRagBaseModel):
    """
    Hit after merging the dense and sparse lists.

    A side that did not return the chunk reports a raw score of 0.0 and
    a False membership flag.
    """

    id: str
    document_id: str
    chunk_index: int = Field(..., ge=0)
    text: str
    fused_score: float
    dense_score: float = 0.0
    sparse_score: float = 0.0
    in_dense: bool = False
    in_sparse: bool = False


class RerankCandidate(HybridRagBaseModel):
    """Input record of the reranker."""

    id: str
    text: str
    initial_score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RerankResult(HybridRagBaseModel):
    """
    Output record of the reranker.

    ``original_rank`` is the 0-based position in the input list,
    ``new_rank`` the dense 0-based position in the output.
    """

    id: str
    text: str
    rerank_score: float
    initial_score: float
    original_rank: int = Field(..., ge=0)
    new_rank: int = Field(..., ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SourceChunk(HybridRagBaseModel):
    """Context passage attached to an answer."""

    document_id: str
    chunk_index: int = Field(..., ge=0)
    relevance_score: float
    text: str


class QueryResult(HybridRagBaseModel):
    """Answer plus the sources it was grounded on."""

    question: str
    answer: str
    sources: List[SourceChunk] = Field(default_factory=list)
    cached: bool = Field(False, description="Served from the query cache")

    @property
    def top_score(self) -> float:
        """Relevance of the first-ranked source, 0.0 without sources."""
        return self.sources[0].relevance_score if self.sources else 0.0


class IndexStats(HybridRagBaseModel):
    """Lexical index totals."""

    total_documents: int
    vocabulary_size: int
    average_document_length: float

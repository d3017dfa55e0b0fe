"""
hybridrag - Hybrid retrieval-augmented generation engine.

Dense vector search and BM25 fused by Reciprocal Rank Fusion, optional
reranking, and frequency/quality gated caching in front of the LLM.
"""

from hybridrag._version import __version__

# Core components
from hybridrag.core import (
    logger,
    Settings,
    generate_id,
    HybridRagError,
    ValidationError,
    ConfigurationError,
    ExternalServiceError,
    RerankError,
)

# Models
from hybridrag.models import (
    Chunk,
    SearchHit,
    FusedResult,
    RerankCandidate,
    RerankResult,
    SourceChunk,
    QueryResult,
)

# Engine components
from hybridrag.rag.chunking import HybridChunker
from hybridrag.rag.retrieval import BM25Index, FusionEngine, FusionStrategy, HybridSearch
from hybridrag.rag.rerank import Reranker, RerankConfig, RerankProvider
from hybridrag.cache import CacheGate

# Main service
from hybridrag.services import RagService, create_rag_service

__all__ = [
    "__version__",
    "logger",
    "Settings",
    "generate_id",
    "HybridRagError",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
    "RerankError",
    "Chunk",
    "SearchHit",
    "FusedResult",
    "RerankCandidate",
    "RerankResult",
    "SourceChunk",
    "QueryResult",
    "HybridChunker",
    "BM25Index",
    "FusionEngine",
    "FusionStrategy",
    "HybridSearch",
    "Reranker",
    "RerankConfig",
    "RerankProvider",
    "CacheGate",
    "RagService",
    "create_rag_service",
]

"""
Re-ranking of fused candidates.
"""

from hybridrag.rag.rerank.base import (
    Reranker,
    RerankBackend,
    RerankConfig,
    RerankProvider,
    passthrough,
)
from hybridrag.rag.rerank.factory import create_backend

__all__ = [
    "Reranker",
    "RerankBackend",
    "RerankConfig",
    "RerankProvider",
    "passthrough",
    "create_backend",
]

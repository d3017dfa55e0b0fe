"""
Embeddings: vector type, service client and the unconditional cache.
"""

from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.embeddings.client import EmbeddingsClient, OllamaEmbeddingsClient
from hybridrag.embeddings.cache import EmbeddingCache, CachedEmbeddings

__all__ = [
    "EmbeddingVector",
    "EmbeddingsClient",
    "OllamaEmbeddingsClient",
    "EmbeddingCache",
    "CachedEmbeddings",
]

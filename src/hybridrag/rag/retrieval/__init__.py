"""
Lexical index, rank fusion and hybrid search.
"""

from hybridrag.rag.retrieval.lexical_index import BM25Index, tokenize
from hybridrag.rag.retrieval.fusion import FusionEngine, FusionStrategy
from hybridrag.rag.retrieval.hybrid_search import HybridSearch
from hybridrag.rag.retrieval.metrics import RAGMetrics

__all__ = [
    "BM25Index",
    "tokenize",
    "FusionEngine",
    "FusionStrategy",
    "HybridSearch",
    "RAGMetrics",
]

"""
Text chunking.
"""

from hybridrag.rag.chunking.hybrid import HybridChunker

__all__ = ["HybridChunker"]

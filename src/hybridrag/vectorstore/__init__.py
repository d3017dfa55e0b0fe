"""
Dense retrieval backends.
"""

from hybridrag.vectorstore.base import VectorPoint, VectorStore
from hybridrag.vectorstore.memory import InMemoryVectorStore

__all__ = ["VectorPoint", "VectorStore", "InMemoryVectorStore"]

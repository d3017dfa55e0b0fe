"""
Completion service clients.
"""

from hybridrag.llm.base import CompletionClient
from hybridrag.llm.ollama import OllamaClient

__all__ = ["CompletionClient", "OllamaClient"]

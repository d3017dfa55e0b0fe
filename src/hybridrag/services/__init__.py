"""
Services module.
"""

from hybridrag.services.rag_service import RagService, create_rag_service, NO_INFORMATION_ANSWER

__all__ = ["RagService", "create_rag_service", "NO_INFORMATION_ANSWER"]

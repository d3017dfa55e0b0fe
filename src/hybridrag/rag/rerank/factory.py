"""
Backend selection for the Reranker.
"""

from typing import Optional

from hybridrag.core.exceptions import ConfigurationError
from hybridrag.llm.base import CompletionClient
from hybridrag.rag.rerank.base import RerankBackend, RerankConfig, RerankProvider
from hybridrag.rag.rerank.http_backends import (
    CohereRerankBackend,
    JinaRerankBackend,
    LocalRerankBackend,
)
from hybridrag.rag.rerank.llm import LLMRerankBackend


def create_backend(
    config: RerankConfig, completion_client: Optional[CompletionClient] = None
) -> Optional[RerankBackend]:
    """
    Build the backend for ``config.provider``.

    Returns None for the disabled provider. The cross-encoder backend is
    imported only when selected, so torch is never loaded otherwise.
    """
    provider = RerankProvider(config.provider)
    # Hosted and in-process providers fall back to their own default model
    model = "" if config.model == RerankConfig.model else config.model

    if provider == RerankProvider.DISABLED:
        return None
    if provider == RerankProvider.LOCAL:
        return LocalRerankBackend(
            config.base_url, config.model, config.api_key, config.timeout_seconds
        )
    if provider == RerankProvider.COHERE:
        return CohereRerankBackend(model, config.api_key, config.timeout_seconds)
    if provider == RerankProvider.JINA:
        return JinaRerankBackend(model, config.api_key, config.timeout_seconds)
    if provider == RerankProvider.LLM:
        if completion_client is None:
            from hybridrag.llm.ollama import OllamaClient

            completion_client = OllamaClient(
                base_url=config.base_url, model=config.model, timeout_seconds=config.timeout_seconds
            )
        return LLMRerankBackend(completion_client)
    if provider == RerankProvider.CROSS_ENCODER:
        from hybridrag.rag.rerank.cross_encoder import CrossEncoderBackend

        return CrossEncoderBackend(model_name=model or None, batch_size=config.batch_size)

    raise ConfigurationError(f"Unknown rerank provider: {provider}")

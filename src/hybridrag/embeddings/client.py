"""
Embedding service clients.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiohttp

from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.core.logging import logger
from hybridrag.core.utils.retry import RetryPolicy, retry_async


@runtime_checkable
class EmbeddingsClient(Protocol):
    """Anything that turns text into a vector of floats."""

    async def embed(self, text: str) -> List[float]: ...


class OllamaEmbeddingsClient:
    """
    Embeddings through Ollama's ``/api/embed`` endpoint.

    The aiohttp session is created lazily on first use so the client can
    be built outside a running event loop.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout_seconds: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retry_policy = retry_policy or RetryPolicy()
        self._session: Optional[aiohttp.ClientSession] = None
        logger.info("OllamaEmbeddingsClient ready", base_url=self.base_url, model=model)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def embed(self, text: str) -> List[float]:
        payload = {"model": self.model, "input": text}

        async def _do_embed() -> Dict[str, Any]:
            try:
                async with self._get_session().post(
                    f"{self.base_url}/api/embed", json=payload
                ) as response:
                    response.raise_for_status()
                    return await response.json()
            except (aiohttp.ClientError, TimeoutError) as e:
                raise ExternalServiceError.from_transport(
                    "Embedding request failed",
                    code="EMBEDDING_NO_RESPONSE",
                    cause=e,
                    context={"url": self.base_url, "model": self.model},
                ) from e

        result = await retry_async(_do_embed, self.retry_policy, logger=logger)

        embeddings = result.get("embeddings") if isinstance(result, dict) else None
        if not embeddings or not isinstance(embeddings[0], list):
            raise ExternalServiceError(
                "Malformed embedding response",
                code="EMBEDDING_MALFORMED",
                context={"url": self.base_url, "keys": list(result or {})},
                retryable=False,
            )
        return [float(x) for x in embeddings[0]]

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

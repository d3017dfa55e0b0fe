"""
Ollama completion client.
"""

from typing import Any, Dict, Optional

import aiohttp

from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.core.logging import logger
from hybridrag.core.utils.retry import RetryPolicy, retry_async


class OllamaClient:
    """
    Minimal client for Ollama's ``/api/generate``.

    Non-streaming only. Transport errors are retried under the RetryPolicy;
    a 4xx answer other than 408 or 429 fails on the first attempt.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1",
        timeout_seconds: float = 120.0,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retry_policy = retry_policy or RetryPolicy(initial_delay=1.0)
        self._session: Optional[aiohttp.ClientSession] = None
        logger.info("OllamaClient ready", base_url=self.base_url, model=self.model)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def complete(self, prompt: str, temperature: float = 0.2, max_tokens: int = 256) -> str:
        """
        Generate a completion for ``prompt``.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature
            max_tokens: Passed to Ollama as ``num_predict``
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        attempt_count = 0

        async def _do_generate() -> Dict[str, Any]:
            nonlocal attempt_count
            attempt_count += 1
            try:
                async with self._get_session().post(
                    f"{self.base_url}/api/generate", json=payload
                ) as response:
                    response.raise_for_status()
                    return await response.json()
            except (aiohttp.ClientError, TimeoutError) as e:
                raise ExternalServiceError.from_transport(
                    "Failed to generate response from Ollama",
                    code="OLLAMA_NO_RESPONSE",
                    cause=e,
                    context={"url": self.base_url, "model": self.model},
                ) from e

        result = await retry_async(_do_generate, self.retry_policy, logger=logger)

        if attempt_count > 1:
            logger.info("Generation succeeded after retry", attempt=attempt_count)

        text = result.get("response") if isinstance(result, dict) else None
        if not isinstance(text, str):
            raise ExternalServiceError(
                "Malformed response from Ollama",
                code="OLLAMA_MALFORMED",
                context={"url": self.base_url},
                retryable=False,
            )
        return text

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

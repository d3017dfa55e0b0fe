"""
Hosted rerank APIs: self-hosted cross-encoder server, Cohere and Jina.

All three accept ``(query, documents, top_n)`` and answer with
``{"results": [{"index": i, "relevance_score": s}, ...]}``.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp

from hybridrag.core.exceptions import RerankError
from hybridrag.core.logging import logger
from hybridrag.models.search import RerankCandidate

COHERE_URL = "https://api.cohere.ai/v1/rerank"
COHERE_DEFAULT_MODEL = "rerank-english-v3.0"
JINA_URL = "https://api.jina.ai/v1/rerank"
JINA_DEFAULT_MODEL = "jina-reranker-v2-base-multilingual"


def parse_rerank_response(body: Any) -> List[Tuple[int, float]]:
    """
    Extract ``(index, score)`` pairs.

    Accepts ``relevance_score`` or ``score`` per result. Anything else is a
    malformed response.
    """
    if not isinstance(body, dict) or not isinstance(body.get("results"), list):
        raise RerankError("Rerank response has no 'results' list")

    pairs: List[Tuple[int, float]] = []
    for item in body["results"]:
        if not isinstance(item, dict) or "index" not in item:
            raise RerankError("Rerank result without index", context={"item": item})
        score = item.get("relevance_score", item.get("score"))
        if score is None:
            raise RerankError("Rerank result without score", context={"item": item})
        try:
            pairs.append((int(item["index"]), float(score)))
        except (TypeError, ValueError) as e:
            raise RerankError("Malformed rerank result", context={"item": item}, cause=e)
    return pairs


class HttpRerankBackend:
    """
    POSTs a rerank request to each endpoint in turn until one answers.

    Every request carries ``timeout_seconds``; non-2xx statuses, network
    errors and malformed JSON move on to the next endpoint, and the last
    failure is raised as RerankError.
    """

    name = "http"

    def __init__(
        self,
        endpoints: Sequence[str],
        model: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
    ) -> None:
        if not endpoints:
            raise ValueError("At least one rerank endpoint is required")
        self.endpoints = list(endpoints)
        self.model = model
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, query: str, documents: List[str], top_k: int) -> Dict[str, Any]:
        return {"query": query, "model": self.model, "top_n": top_k, "documents": documents}

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        async with self._get_session().post(
            url, json=payload, headers=self._headers()
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def score(
        self, query: str, candidates: Sequence[RerankCandidate], top_k: int
    ) -> List[Tuple[int, float]]:
        payload = self.build_payload(query, [c.text for c in candidates], top_k)
        last_error: Optional[Exception] = None

        for url in self.endpoints:
            try:
                body = await self._post_json(url, payload)
                return parse_rerank_response(body)
            except (aiohttp.ClientError, TimeoutError, ValueError, RerankError) as e:
                last_error = e
                logger.debug("Rerank endpoint failed", url=url, error=str(e))

        raise RerankError(
            f"All rerank endpoints failed: {last_error}",
            context={"endpoints": self.endpoints, "provider": self.name},
            cause=last_error,
        )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()


class LocalRerankBackend(HttpRerankBackend):
    """Self-hosted cross-encoder server, e.g. a TEI or Infinity deployment."""

    name = "local"

    def __init__(
        self, base_url: str, model: str, api_key: str = "", timeout_seconds: float = 30.0
    ) -> None:
        base_url = base_url.rstrip("/")
        super().__init__(
            [f"{base_url}/v1/rerank", f"{base_url}/rerank"], model, api_key, timeout_seconds
        )


class CohereRerankBackend(HttpRerankBackend):
    name = "cohere"

    def __init__(self, model: str, api_key: str, timeout_seconds: float = 30.0) -> None:
        super().__init__([COHERE_URL], model or COHERE_DEFAULT_MODEL, api_key, timeout_seconds)

    def build_payload(self, query: str, documents: List[str], top_k: int) -> Dict[str, Any]:
        payload = super().build_payload(query, documents, top_k)
        payload["return_documents"] = False
        return payload


class JinaRerankBackend(HttpRerankBackend):
    name = "jina"

    def __init__(self, model: str, api_key: str, timeout_seconds: float = 30.0) -> None:
        super().__init__([JINA_URL], model or JINA_DEFAULT_MODEL, api_key, timeout_seconds)

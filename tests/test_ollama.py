"""
Tests for the Ollama completion and embedding clients with a fake aiohttp session.
"""

import asyncio

import aiohttp
import pytest

from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.core.utils.retry import RetryPolicy
from hybridrag.embeddings.client import EmbeddingsClient, OllamaEmbeddingsClient
from hybridrag.llm.ollama import OllamaClient


class FakeResponse:
    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.error is not None:
            raise self.error

    async def json(self):
        return self.body


class FakeSession:
    """Replays queued responses and records every POST."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.posts = []
        self.closed = False

    def post(self, url, json=None):
        self.posts.append((url, json))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def _sleep(delay):
        return None

    monkeypatch.setattr(asyncio, "sleep", _sleep)


def attach(client, session):
    client._get_session = lambda: session
    return session


class TestOllamaClient:
    async def test_complete(self):
        client = OllamaClient(base_url="http://ollama:11434/", model="llama3.1")
        session = attach(client, FakeSession(FakeResponse({"response": "Hello"})))

        text = await client.complete("Say hello", temperature=0.2, max_tokens=16)

        assert text == "Hello"
        url, payload = session.posts[0]
        assert url == "http://ollama:11434/api/generate"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.2, "num_predict": 16}

    async def test_retries_then_succeeds(self):
        client = OllamaClient(retry_policy=RetryPolicy(max_attempts=2))
        session = attach(
            client,
            FakeSession(
                FakeResponse(error=aiohttp.ClientError("boom")),
                FakeResponse({"response": "ok"}),
            ),
        )

        assert await client.complete("prompt") == "ok"
        assert len(session.posts) == 2

    async def test_exhausted_retries(self):
        client = OllamaClient(retry_policy=RetryPolicy(max_attempts=2))
        attach(
            client,
            FakeSession(
                FakeResponse(error=aiohttp.ClientError("boom")),
                FakeResponse(error=aiohttp.ClientError("boom")),
            ),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.complete("prompt")

        assert exc_info.value.code == "OLLAMA_NO_RESPONSE"

    async def test_client_error_status_is_not_retried(self):
        client = OllamaClient(retry_policy=RetryPolicy(max_attempts=3))
        not_found = aiohttp.ClientResponseError(None, (), status=404, message="model not found")
        session = attach(client, FakeSession(FakeResponse(error=not_found)))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.complete("prompt")

        assert len(session.posts) == 1
        assert exc_info.value.is_retryable() is False
        assert exc_info.value.context["status"] == 404

    async def test_server_error_status_is_retried(self):
        client = OllamaClient(retry_policy=RetryPolicy(max_attempts=2))
        unavailable = aiohttp.ClientResponseError(None, (), status=503, message="busy")
        session = attach(
            client,
            FakeSession(FakeResponse(error=unavailable), FakeResponse({"response": "ok"})),
        )

        assert await client.complete("prompt") == "ok"
        assert len(session.posts) == 2

    async def test_malformed_body(self):
        client = OllamaClient(retry_policy=RetryPolicy(max_attempts=1))
        attach(client, FakeSession(FakeResponse({"done": True})))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.complete("prompt")

        assert exc_info.value.code == "OLLAMA_MALFORMED"

    async def test_close_without_session(self):
        await OllamaClient().close()


class TestOllamaEmbeddingsClient:
    async def test_embed(self):
        client = OllamaEmbeddingsClient(model="nomic-embed-text")
        session = attach(client, FakeSession(FakeResponse({"embeddings": [[1, 2.5, -3]]})))

        vector = await client.embed("text")

        assert vector == [1.0, 2.5, -3.0]
        assert session.posts[0][1] == {"model": "nomic-embed-text", "input": "text"}

    def test_satisfies_protocol(self):
        assert isinstance(OllamaEmbeddingsClient(), EmbeddingsClient)

    @pytest.mark.parametrize("body", [{}, {"embeddings": []}, {"embeddings": [1.0, 2.0]}])
    async def test_malformed(self, body):
        client = OllamaEmbeddingsClient(retry_policy=RetryPolicy(max_attempts=1))
        attach(client, FakeSession(FakeResponse(body)))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.embed("text")

        assert exc_info.value.code == "EMBEDDING_MALFORMED"

    async def test_http_failure(self):
        client = OllamaEmbeddingsClient(retry_policy=RetryPolicy(max_attempts=1))
        attach(client, FakeSession(FakeResponse(error=aiohttp.ClientError("down"))))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.embed("text")

        assert exc_info.value.code == "EMBEDDING_NO_RESPONSE"

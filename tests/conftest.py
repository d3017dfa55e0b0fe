"""
Shared fixtures: deterministic collaborators and isolated settings.
"""

import hashlib
import re
from typing import Callable, List, Optional, Union

import pytest

from hybridrag.core.config import Settings
from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.vectorstore.memory import InMemoryVectorStore

EMBEDDING_DIM = 64

_WORD = re.compile(r"[a-z0-9]+")


class HashEmbedder:
    """
    Bag-of-words embedder: each word lands in a hashed bucket.

    Texts sharing words get a positive cosine similarity, unrelated texts
    stay close to zero.
    """

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.calls: List[str] = []
        self.fail = False

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise ExternalServiceError("embedding backend down")
        vector = [0.0] * self.dim
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dim
            vector[bucket] += 1.0
        # Keep blank or symbol-only text away from the zero vector
        vector[0] += 0.01
        return vector


class ScriptedCompletion:
    """Returns a fixed answer, or the result of a function of the prompt."""

    def __init__(self, response: Union[str, Callable[[str], str]] = "Scripted answer."):
        self.response = response
        self.prompts: List[str] = []
        self.error: Optional[Exception] = None

    async def complete(self, prompt: str, temperature: float = 0.2, max_tokens: int = 256) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(prompt)
        return self.response


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in (
        "HYBRIDRAG_LOG_LEVEL",
        "HYBRIDRAG_OLLAMA_URL",
        "HYBRIDRAG_WEAVIATE_URL",
        "HYBRIDRAG_RERANK_PROVIDER",
        "HYBRIDRAG_RERANK_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings(tmp_path):
    """Settings that never read a ``.hybridrag`` from the working directory."""

    def _make(**overrides) -> Settings:
        return Settings(config_path=tmp_path / "absent.yaml", overrides=overrides)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings(chunking={"max_chars": 300, "overlap_chars": 0, "min_chars": 10})


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()

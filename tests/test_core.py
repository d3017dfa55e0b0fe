"""
Tests for configuration, exceptions, ids and utilities.
"""

import asyncio
import threading

import pytest

from hybridrag.core.config import Settings
from hybridrag.core.exceptions import (
    ConfigurationError,
    ErrorType,
    ExternalServiceError,
    HybridRagError,
    RerankError,
    ValidationError,
    configuration_error,
    external_service_error,
    from_exception,
    validation_error,
)
from hybridrag.core.id_generator import generate_id, is_valid_id, stable_chunk_id
from hybridrag.core.tracing import MetricsCollector, tracer
from hybridrag.core.utils import ReadWriteLock, RetryPolicy, is_retryable, retry_async


class TestSettings:
    def test_defaults(self, make_settings):
        settings = make_settings()

        assert settings.get("chunking.max_chars") == 1200
        assert settings.get("hybrid.strategy") == "weighted_rrf"
        assert settings.get("cache.frequency_threshold") == 2
        assert settings.get("cache.quality_min_score") == 0.65
        assert settings.get("retrieval.min_relevance_score") == 0.0
        assert settings.get("rerank.enabled") is False

    def test_missing_key_returns_default(self, make_settings):
        settings = make_settings()

        assert settings.get("hybrid.unknown", 42) == 42
        assert settings.get("nope") is None

    def test_require(self, make_settings):
        settings = make_settings()

        assert settings.require("ollama.url") == "http://localhost:11434"
        with pytest.raises(ConfigurationError):
            settings.require("ollama.missing")

    def test_overrides_deep_merge(self, make_settings):
        settings = make_settings(hybrid={"dense_weight": 0.5})

        assert settings.get("hybrid.dense_weight") == 0.5
        assert settings.get("hybrid.sparse_weight") == 0.3

    def test_yaml_file(self, tmp_path):
        config_file = tmp_path / ".hybridrag"
        config_file.write_text(
            "chunking:\n  max_chars: 800\nrerank:\n  enabled: true\n  provider: jina\n",
            encoding="utf-8",
        )

        settings = Settings(config_path=config_file)

        assert settings.get("chunking.max_chars") == 800
        assert settings.get("chunking.min_chars") == 50
        assert settings.get("rerank.provider") == "jina"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / ".hybridrag"
        config_file.write_text("ollama:\n  url: http://file:11434\n", encoding="utf-8")
        monkeypatch.setenv("HYBRIDRAG_OLLAMA_URL", "http://env:11434")
        monkeypatch.setenv("HYBRIDRAG_RERANK_PROVIDER", "cohere")

        settings = Settings(config_path=config_file)

        assert settings.get("ollama.url") == "http://env:11434"
        assert settings.get("rerank.provider") == "cohere"

    def test_malformed_yaml(self, tmp_path):
        config_file = tmp_path / ".hybridrag"
        config_file.write_text("chunking: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings(config_path=config_file)

    def test_non_mapping_yaml(self, tmp_path):
        config_file = tmp_path / ".hybridrag"
        config_file.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings(config_path=config_file)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunking": {"max_chars": 0}},
            {"chunking": {"min_chars": 5000}},
            {"chunking": {"overlap_chars": -1}},
            {"retrieval": {"top_k": 0}},
            {"hybrid": {"strategy": "borda"}},
            {"hybrid": {"dense_weight": 0, "sparse_weight": 0}},
            {"hybrid": {"rrf_k": 0}},
            {"hybrid": {"linear_alpha": 2}},
            {"rerank": {"provider": "voyage"}},
            {"rerank": {"candidate_count": 0}},
            {"cache": {"frequency_threshold": 0}},
            {"cache": {"query_max_size": -1}},
            {"performance": {"vector_batch_size": 0}},
        ],
    )
    def test_invalid_values(self, make_settings, overrides):
        with pytest.raises(ConfigurationError) as exc_info:
            make_settings(**overrides)

        assert exc_info.value.suggestions


class TestExceptions:
    def test_base_error_fields(self):
        cause = OSError("disk")
        error = HybridRagError("Something broke", context={"k": "v"}, cause=cause)

        data = error.to_dict()

        assert is_valid_id(data["error_id"])
        assert data["code"] == "HybridRagError"
        assert data["message"] == "Something broke"
        assert data["context"] == {"k": "v"}
        assert data["cause"] == {"type": "OSError", "message": "disk"}
        assert "suggestions" not in data

    def test_suggestions_ignore_blanks_and_duplicates(self):
        error = ValidationError("bad")
        error.add_suggestion("Fix it")
        error.add_suggestion("Fix it")
        error.add_suggestion("")

        assert error.suggestions == ["Fix it"]

    def test_retryable(self):
        assert ExternalServiceError("down").is_retryable() is True
        assert RerankError("down").is_retryable() is True
        assert ValidationError("bad").is_retryable() is False

    def test_hierarchy(self):
        assert issubclass(RerankError, ExternalServiceError)
        assert issubclass(ValidationError, HybridRagError)

    @pytest.mark.parametrize(
        "error,expected",
        [
            (ValidationError("x"), ErrorType.VALIDATION),
            (ConfigurationError("x"), ErrorType.CONFIGURATION),
            (ExternalServiceError("x"), ErrorType.EXTERNAL_SERVICE),
            (RerankError("x"), ErrorType.EXTERNAL_SERVICE),
            (HybridRagError("x"), ErrorType.INTERNAL),
        ],
    )
    def test_from_exception(self, error, expected):
        response = from_exception(error)

        assert response.error_type == expected
        assert response.error_id == error.id

    def test_response_helpers(self):
        assert validation_error("text", "", "blank").details[0].field == "text"
        assert external_service_error("ollama").context == {"service": "ollama"}
        config = configuration_error("hybrid.rrf_k", 0, "positive number")
        assert config.suggestions[0] == "The value must be: positive number"


class TestIds:
    def test_generate_id(self):
        first, second = generate_id(), generate_id()

        assert is_valid_id(first)
        assert first != second

    def test_stable_chunk_id(self):
        chunk_id = stable_chunk_id("doc", 0, "hello")

        assert chunk_id == stable_chunk_id("doc", 0, "hello")
        assert chunk_id != stable_chunk_id("doc", 1, "hello")
        assert chunk_id != stable_chunk_id("doc", 0, "hello!")
        assert is_valid_id(chunk_id)

    @pytest.mark.parametrize("value", ["", "xyz", "A" * 32, "0" * 31])
    def test_invalid_ids(self, value):
        assert is_valid_id(value) is False


class TestReadWriteLock:
    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=2)

        def reader():
            with lock.read_locked():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []

        lock.acquire_write()

        def reader():
            with lock.read_locked():
                events.append("read")

        thread = threading.Thread(target=reader)
        thread.start()
        thread.join(timeout=0.1)
        events.append("write-done")
        lock.release_write()
        thread.join(timeout=5)

        assert events == ["write-done", "read"]


class TestRetry:
    async def test_retries_until_success(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ExternalServiceError("try again")
            return "ok"

        assert await retry_async(flaky, RetryPolicy(max_attempts=3, initial_delay=0)) == "ok"
        assert len(attempts) == 3

    async def test_raises_last_error(self):
        async def broken():
            raise ExternalServiceError("nope")

        with pytest.raises(ExternalServiceError):
            await retry_async(broken, RetryPolicy(max_attempts=2, initial_delay=0))

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("bad input"),
            ValidationError("bad input"),
            ExternalServiceError("model not found", retryable=False),
        ],
    )
    async def test_final_errors_are_not_retried(self, error):
        attempts = []

        async def failing():
            attempts.append(1)
            raise error

        with pytest.raises(type(error)):
            await retry_async(failing, RetryPolicy(max_attempts=3, initial_delay=0))
        assert len(attempts) == 1

    def test_is_retryable(self):
        assert is_retryable(ExternalServiceError("down")) is True
        assert is_retryable(ExternalServiceError("gone", retryable=False)) is False
        assert is_retryable(ConnectionError("raw")) is False

    @pytest.mark.parametrize(
        "backoff,delays",
        [("exponential", [0.5, 1.0, 2.0]), ("linear", [0.5, 1.0, 1.5]), ("constant", [0.5, 0.5, 0.5])],
    )
    def test_backoff(self, backoff, delays):
        policy = RetryPolicy(backoff=backoff, initial_delay=0.5)

        assert [policy.delay(n) for n in (1, 2, 3)] == delays

    def test_delay_is_capped(self):
        assert RetryPolicy(initial_delay=10, max_delay=15).delay(5) == 15

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(backoff="random")

    def test_policy_from_settings(self, make_settings):
        settings = make_settings(retry={"max_attempts": 5, "backoff": "linear", "initial_delay": 0.1})

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(max_attempts=5, backoff="linear", initial_delay=0.1, max_delay=30.0)

    def test_invalid_retry_settings(self, make_settings):
        with pytest.raises(ConfigurationError):
            make_settings(retry={"max_attempts": 0})


class TestExternalServiceError:
    class _Status(Exception):
        def __init__(self, status):
            super().__init__(f"HTTP {status}")
            self.status = status

    @pytest.mark.parametrize("status,retryable", [(500, True), (503, True), (429, True), (408, True), (404, False), (400, False)])
    def test_from_transport_status(self, status, retryable):
        error = ExternalServiceError.from_transport("failed", "CODE", self._Status(status))

        assert error.is_retryable() is retryable
        assert error.context["status"] == status
        assert error.code == "CODE"

    def test_from_transport_connection_error(self):
        error = ExternalServiceError.from_transport("failed", "CODE", ConnectionError("refused"))

        assert error.is_retryable() is True
        assert "status" not in error.context


class TestTracing:
    def test_metrics_collector(self):
        metrics = MetricsCollector("test")
        metrics.increment("hits")
        metrics.increment("hits", 2)
        metrics.gauge("size", 7)

        assert metrics.get("hits") == 3
        assert metrics.get_metrics() == {"test.hits": 3, "test.size": 7}
        assert metrics.get("missing", -1) == -1

    async def test_span_is_a_context_manager(self):
        with tracer.span("unit", {"k": 1}):
            await asyncio.sleep(0)

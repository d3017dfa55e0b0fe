"""
Configuration for hybridrag.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, cast

from hybridrag.core.exceptions import ConfigurationError
from hybridrag.core.logging import logger
from hybridrag.core.utils.retry import BACKOFF_STRATEGIES

CONFIG_FILE_NAME = ".hybridrag"

RERANK_PROVIDERS = ("local", "cohere", "jina", "llm", "cross_encoder", "disabled")
FUSION_STRATEGIES = ("rrf", "weighted_rrf", "linear")


class ConfigValidator:
    """
    Configuration validator.

    Checks types and ranges of the retrieval settings so bad values fail
    at startup instead of at query time.
    """

    def validate_config(self, config: Dict[str, Any]) -> None:
        """Validate the complete configuration, raising ConfigurationError."""
        chunking = config.get("chunking", {})
        max_chars = chunking.get("max_chars")
        min_chars = chunking.get("min_chars")
        overlap = chunking.get("overlap_chars")
        if not isinstance(max_chars, int) or max_chars <= 0:
            self._fail("chunking.max_chars", max_chars, "positive integer")
        if not isinstance(min_chars, int) or min_chars < 0 or min_chars > max_chars:
            self._fail("chunking.min_chars", min_chars, "integer between 0 and max_chars")
        if not isinstance(overlap, int) or overlap < 0:
            self._fail("chunking.overlap_chars", overlap, "non-negative integer")

        retrieval = config.get("retrieval", {})
        top_k = retrieval.get("top_k")
        if not isinstance(top_k, int) or top_k <= 0:
            self._fail("retrieval.top_k", top_k, "positive integer")

        hybrid = config.get("hybrid", {})
        if hybrid.get("strategy") not in FUSION_STRATEGIES:
            self._fail("hybrid.strategy", hybrid.get("strategy"), " | ".join(FUSION_STRATEGIES))
        dense_weight = float(hybrid.get("dense_weight", 0))
        sparse_weight = float(hybrid.get("sparse_weight", 0))
        if dense_weight < 0 or sparse_weight < 0 or dense_weight + sparse_weight <= 0:
            self._fail(
                "hybrid.dense_weight/sparse_weight",
                (dense_weight, sparse_weight),
                "non-negative weights with a positive sum",
            )
        if float(hybrid.get("rrf_k", 0)) <= 0:
            self._fail("hybrid.rrf_k", hybrid.get("rrf_k"), "positive number")
        alpha = float(hybrid.get("linear_alpha", 0.5))
        if not 0.0 <= alpha <= 1.0:
            self._fail("hybrid.linear_alpha", alpha, "number in [0, 1]")

        rerank = config.get("rerank", {})
        if rerank.get("provider") not in RERANK_PROVIDERS:
            self._fail("rerank.provider", rerank.get("provider"), " | ".join(RERANK_PROVIDERS))
        candidate_count = rerank.get("candidate_count")
        if not isinstance(candidate_count, int) or candidate_count <= 0:
            self._fail("rerank.candidate_count", candidate_count, "positive integer")

        cache = config.get("cache", {})
        threshold = cache.get("frequency_threshold")
        if not isinstance(threshold, int) or threshold < 1:
            self._fail("cache.frequency_threshold", threshold, "integer >= 1")
        for key in ("completion_max_size", "query_max_size", "embedding_max_size"):
            value = cache.get(key)
            if not isinstance(value, int) or value < 0:
                self._fail(f"cache.{key}", value, "non-negative integer")

        performance = config.get("performance", {})
        for key in ("max_concurrent_embeddings", "vector_batch_size"):
            value = performance.get(key)
            if not isinstance(value, int) or value <= 0:
                self._fail(f"performance.{key}", value, "positive integer")

        retry = config.get("retry", {})
        max_attempts = retry.get("max_attempts")
        if not isinstance(max_attempts, int) or max_attempts < 1:
            self._fail("retry.max_attempts", max_attempts, "integer >= 1")
        if retry.get("backoff") not in BACKOFF_STRATEGIES:
            self._fail("retry.backoff", retry.get("backoff"), " | ".join(BACKOFF_STRATEGIES))
        for key in ("initial_delay", "max_delay"):
            value = retry.get(key)
            if not isinstance(value, (int, float)) or value < 0:
                self._fail(f"retry.{key}", value, "non-negative number")

    def _fail(self, setting: str, value: Any, expected: str) -> None:
        logger.error("Invalid configuration", setting=setting, value=value)
        error = ConfigurationError(
            f"Invalid configuration for '{setting}': {value!r}. Expected: {expected}",
            context={"setting": setting, "current_value": value},
        )
        error.add_suggestion(f"Review '{setting}' in {CONFIG_FILE_NAME}")
        raise error


class Settings:
    """
    Main configuration.

    Priority, lowest first:
    1. Default values
    2. ``.hybridrag`` YAML file
    3. Environment variables
    4. Explicit overrides (tests, CLI flags)
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._config_path = config_path
        self.config = self._load_config()
        if overrides:
            self._deep_merge(self.config, overrides)
        self.validator = ConfigValidator()
        self.validator.validate_config(self.config)
        logger.info(
            "Settings initialized",
            config_source=str(self._find_config_file() or "defaults"),
        )

    def _get_default_config(self) -> Dict[str, Any]:
        """Default configuration."""
        return {
            "version": "1.0",
            "logging": {"level": "INFO", "file": "hybridrag.log", "debug_mode": False},
            "chunking": {"max_chars": 1200, "overlap_chars": 150, "min_chars": 50},
            "retrieval": {"top_k": 5, "min_relevance_score": 0.0},
            "hybrid": {
                "enabled": True,
                "strategy": "weighted_rrf",
                "dense_weight": 0.7,
                "sparse_weight": 0.3,
                "rrf_k": 60.0,
                "linear_alpha": 0.5,
            },
            "rerank": {
                "enabled": False,
                "provider": "local",
                "base_url": "http://localhost:8001",
                "model": "bge-reranker-base",
                "api_key": "",
                "candidate_count": 50,
                "min_score": 0.0,
                "timeout_seconds": 30.0,
                "batch_size": 32,
            },
            "cache": {
                "frequency_threshold": 2,
                "completion_max_size": 1000,
                "query_max_size": 500,
                "quality_min_score": 0.65,
                "embedding_max_size": 2000,
            },
            "performance": {"max_concurrent_embeddings": 4, "vector_batch_size": 64},
            "retry": {
                "max_attempts": 3,
                "backoff": "exponential",
                "initial_delay": 0.5,
                "max_delay": 30.0,
            },
            "ollama": {
                "url": "http://localhost:11434",
                "model": "llama3.1",
                "embed_model": "nomic-embed-text",
                "timeout_seconds": 120.0,
                "temperature": 0.2,
                "max_tokens": 256,
            },
            "weaviate": {
                "url": "http://localhost:8080",
                "class_name": "HybridChunk",
                "timeout_seconds": 30.0,
            },
        }

    def _find_config_file(self) -> Optional[Path]:
        """Explicit path first, then ``.hybridrag`` in the current directory."""
        if self._config_path is not None:
            return self._config_path if self._config_path.exists() else None
        local_config = Path.cwd() / CONFIG_FILE_NAME
        if local_config.exists():
            return local_config
        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load defaults, merge the YAML file, apply env overrides."""
        defaults = self._get_default_config()

        config_path = self._find_config_file()
        if config_path is not None:
            try:
                with open(config_path, encoding='utf-8') as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(
                    "Error reading configuration file", file=str(config_path), error=str(e)
                )
                raise ConfigurationError(
                    f"Error reading configuration file: {e}",
                    context={"file": str(config_path)},
                    cause=e,
                )
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        "Configuration file must contain a mapping",
                        context={"file": str(config_path)},
                    )
                self._deep_merge(defaults, file_config)
                logger.debug("Config loaded from file", keys=list(file_config.keys()))

        env_overrides = {
            "HYBRIDRAG_LOG_LEVEL": ("logging", "level"),
            "HYBRIDRAG_OLLAMA_URL": ("ollama", "url"),
            "HYBRIDRAG_WEAVIATE_URL": ("weaviate", "url"),
            "HYBRIDRAG_RERANK_PROVIDER": ("rerank", "provider"),
            "HYBRIDRAG_RERANK_API_KEY": ("rerank", "api_key"),
        }

        for env_key, path_tuple in env_overrides.items():
            env_value = os.getenv(env_key)
            if env_value:
                self._set_nested(defaults, path_tuple, env_value)

        return defaults

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Deep merge of dictionaries."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(cast(Dict[str, Any], base[key]), cast(Dict[str, Any], value))
            else:
                base[key] = value

    def _set_nested(self, data: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
        """Set value at nested path."""
        current = data
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, supporting dotted paths like ``"rerank.provider"``."""
        if "." in key:
            current: Any = self.config
            for part in key.split("."):
                if isinstance(current, dict) and part in current:
                    current = current[part]
                else:
                    return default
            return current
        return self.config.get(key, default)

    def require(self, key: str) -> Any:
        """Get a value or raise ConfigurationError when it is missing."""
        value = self.get(key)
        if value is None:
            logger.error("Required config missing", key=key)
            raise ConfigurationError(f"Missing required config: {key}")
        return value

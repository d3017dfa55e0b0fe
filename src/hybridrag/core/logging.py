"""
Simple asynchronous logging for hybridrag.
"""

import os
import time
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
from loguru import logger as loguru_logger


class AsyncLogger:
    """
    Asynchronous logger with a flat format.

    Format: timestamp | level | component | message
    """

    # Single handler shared by every instance
    _handler_id = None
    log_file = "hybridrag.log"

    def __init__(self, component: str, debug_mode: bool = False):
        self.component = component
        self.debug_mode = debug_mode
        self._setup_async_handler()

    def _setup_async_handler(self):
        """
        Add the enqueued file sink once per process.

        The sink rotates at 10 MB and compresses old files.
        """
        if AsyncLogger._handler_id is None:
            AsyncLogger._handler_id = loguru_logger.add(
                AsyncLogger.log_file,
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[component]} | {message}",
                rotation="10 MB",
                compression="zip",
                enqueue=True,
            )

    def log(self, level: str, message: str, **context):
        """Record a message without blocking the caller."""
        loguru_logger.bind(component=self.component, **context).log(level, message)

    def debug(self, message: str, **context):
        """Log at DEBUG level."""
        self.log("DEBUG", message, **context)

    def info(self, message: str, **context):
        """Log at INFO level."""
        self.log("INFO", message, **context)

    def warning(self, message: str, **context):
        """Log at WARNING level."""
        self.log("WARNING", message, **context)

    def error(self, message: str, include_trace: Optional[bool] = None, **context):
        """
        Log at ERROR level with an optional stack trace.

        Args:
            message: Error message
            include_trace: Attach the current traceback (None = follow debug_mode)
            **context: Extra structured context
        """
        should_include_trace = include_trace if include_trace is not None else self.debug_mode

        if should_include_trace:
            import traceback

            context["stack_trace"] = traceback.format_exc()

        self.log("ERROR", message, **context)


class PerformanceLogger:
    """
    Logger specialised in operation timings.
    """

    def __init__(self):
        self.logger = AsyncLogger("performance")

    @contextmanager
    def measure(self, operation: str, **context):
        """
        Context manager that logs the duration of a block.

        Usage:
        ```
        with perf_logger.measure("bm25_search", top_k=10):
            hits = index.search(query, 10)
        ```
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.info(
                "Operation completed", operation=operation, duration_ms=duration * 1000, **context
            )


def _read_logging_section() -> Dict[str, Any]:
    """Read the ``logging`` section of ``.hybridrag`` if the file exists."""
    config_path = Path(".hybridrag")
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    section = config.get("logging", {})
    return section if isinstance(section, dict) else {}


def _get_debug_mode() -> bool:
    """Debug mode from ``.hybridrag`` or the HYBRIDRAG_DEBUG variable."""
    section = _read_logging_section()
    if "debug_mode" in section:
        return bool(section["debug_mode"])
    return os.getenv("HYBRIDRAG_DEBUG", "false").lower() == "true"


AsyncLogger.log_file = _read_logging_section().get("file", AsyncLogger.log_file)

logger = AsyncLogger("hybridrag", debug_mode=_get_debug_mode())
perf_logger = PerformanceLogger()

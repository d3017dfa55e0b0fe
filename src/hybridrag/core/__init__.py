"""
hybridrag core module.

Exports the fundamental infrastructure components.
"""

from hybridrag.core.config import Settings, ConfigValidator

from hybridrag.core.exceptions import (
    HybridRagError,
    ConfigurationError,
    ValidationError,
    ExternalServiceError,
    RerankError,
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    validation_error,
    external_service_error,
    configuration_error,
    from_exception,
)

from hybridrag.core.logging import AsyncLogger, PerformanceLogger, logger, perf_logger

from hybridrag.core.tracing import tracer, LocalTracer, MetricsCollector

from hybridrag.core.id_generator import generate_id, stable_chunk_id, is_valid_id

__all__ = [
    "Settings",
    "ConfigValidator",
    "HybridRagError",
    "ConfigurationError",
    "ValidationError",
    "ExternalServiceError",
    "RerankError",
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "validation_error",
    "external_service_error",
    "configuration_error",
    "from_exception",
    "AsyncLogger",
    "PerformanceLogger",
    "logger",
    "perf_logger",
    "tracer",
    "LocalTracer",
    "MetricsCollector",
    "generate_id",
    "stable_chunk_id",
    "is_valid_id",
]

"""
Unified exception hierarchy for hybridrag.
Single source of exceptions and error responses for the whole package.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from hybridrag.core.id_generator import generate_id
from hybridrag.core.utils.datetime_utils import utc_now, format_iso


# ============================================================================
# PART 1: PYTHON EXCEPTIONS (raise/catch)
# ============================================================================


class HybridRagError(Exception):
    """
    Base error of the retrieval engine.

    Carries:
    1. Structured serialization
    2. Rich context
    3. Resolution suggestions
    4. Unique id for tracking
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.id: str = generate_id()
        self.timestamp: datetime = utc_now()
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause
        self.suggestions: List[str] = []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize for an API payload.

        Returns:
            {
                "error_id": "hex32chars",
                "code": "ExternalServiceError",
                "message": "Embedding request failed",
                "timestamp": "2024-01-20T10:30:00Z",
                "context": {...}
            }
        """
        result: Dict[str, Any] = {
            "error_id": self.id,
            "code": self.code,
            "message": self.message,
            "timestamp": format_iso(self.timestamp),
            "context": self.context,
        }

        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result

    def add_suggestion(self, suggestion: str) -> None:
        """Append a resolution hint, ignoring blanks and duplicates."""
        if not suggestion or not isinstance(suggestion, str):
            return

        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def is_retryable(self) -> bool:
        """Whether retrying the same call could succeed."""
        return False


class ConfigurationError(HybridRagError):
    """Invalid settings file or values."""

    pass


class ValidationError(HybridRagError):
    """
    Input validation failure.

    Raised for blank identifiers or text, invalid chunker parameters,
    embedding dimension mismatches and invalid fusion weights.
    """

    pass


class ExternalServiceError(HybridRagError):
    """
    Failure of an external collaborator (embeddings, vector store, completion).

    Retryable unless built with ``retryable=False``, e.g. for a 4xx answer
    that will not change on a second call.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message, code=code, context=context, cause=cause)
        self.retryable = retryable

    @classmethod
    def from_transport(
        cls,
        message: str,
        code: str,
        cause: Exception,
        context: Optional[Dict[str, Any]] = None,
    ) -> "ExternalServiceError":
        """
        Wrap an HTTP transport failure.

        Connection errors, timeouts, 5xx, 408 and 429 stay retryable; any
        other 4xx status is final.
        """
        context = dict(context or {})
        status = getattr(cause, "status", None)
        retryable = True
        if isinstance(status, int):
            context["status"] = status
            retryable = not (400 <= status < 500 and status not in (408, 429))
        return cls(message, code=code, context=context, cause=cause, retryable=retryable)

    def is_retryable(self) -> bool:
        return self.retryable


class RerankError(ExternalServiceError):
    """Rerank provider failure. Always converted to passthrough by the Reranker."""

    pass


# ============================================================================
# PART 2: RESPONSE MODELS (API layer)
# ============================================================================


class ErrorType(str, Enum):
    """Error categories an API layer can map to status codes."""

    VALIDATION = "validation_error"
    INTERNAL = "internal_error"
    EXTERNAL_SERVICE = "external_service_error"
    CONFIGURATION = "configuration_error"


class ErrorDetail(BaseModel):
    """Field-level validation failure."""

    field: str = Field(..., description="Field that failed validation")
    value: Any = Field(..., description="Invalid value received")
    reason: str = Field(..., description="Failure reason")
    message: str = Field(..., description="Human readable explanation")


class ErrorResponse(BaseModel):
    """Structured error payload."""

    error_type: ErrorType = Field(..., description="Error category")
    message: str = Field(..., description="Main error message")
    error_id: Optional[str] = Field(default=None, description="Unique id for tracking")
    details: Optional[List[ErrorDetail]] = Field(
        default=None, description="Field details for validation errors"
    )
    context: Optional[Dict[str, Any]] = Field(default=None, description="Extra context")
    suggestions: Optional[List[str]] = Field(
        default=None, description="Hints to resolve the error"
    )
    code: Optional[str] = Field(default=None, description="Error code")


# ============================================================================
# PART 3: HELPERS (exceptions to responses)
# ============================================================================


def validation_error(
    field: str, value: Any, reason: str, message: Optional[str] = None
) -> ErrorResponse:
    """
    Build a validation error with field details.

    Args:
        field: Failing field
        value: Received value
        reason: Failure reason (e.g. "blank", "out_of_range")
        message: Optional custom message
    """
    default_message = f"Validation failed for field '{field}'"

    return ErrorResponse(
        error_type=ErrorType.VALIDATION,
        message=message or default_message,
        details=[
            ErrorDetail(
                field=field,
                value=value,
                reason=reason,
                message=message or f"Invalid value for {field}: {reason}",
            )
        ],
        code="validation_error",
    )


def external_service_error(service: str, message: Optional[str] = None) -> ErrorResponse:
    """Build an error for an unavailable collaborator."""
    return ErrorResponse(
        error_type=ErrorType.EXTERNAL_SERVICE,
        message=message or f"External service '{service}' is unavailable",
        context={"service": service},
        suggestions=[
            f"Check that {service} is running",
            f"Check connectivity with {service}",
        ],
        code="external_service_error",
    )


def configuration_error(
    setting: str, current_value: Any = None, expected: Optional[str] = None
) -> ErrorResponse:
    """Build an error for an invalid setting."""
    message = f"Invalid configuration for '{setting}'"
    if expected:
        message += f". Expected: {expected}"

    context: Dict[str, Any] = {"setting": setting}
    if current_value is not None:
        context["current_value"] = current_value

    suggestions = [
        f"Review '{setting}' in .hybridrag",
        "Check the format of the configuration file",
    ]
    if expected:
        suggestions.insert(0, f"The value must be: {expected}")

    return ErrorResponse(
        error_type=ErrorType.CONFIGURATION,
        message=message,
        context=context,
        suggestions=suggestions,
        code="configuration_error",
    )


def from_exception(exc: HybridRagError) -> ErrorResponse:
    """
    Convert a HybridRagError into an ErrorResponse.

    Args:
        exc: Exception to convert

    Returns:
        ErrorResponse ready to serialize
    """
    error_type_map = {
        "ValidationError": ErrorType.VALIDATION,
        "ConfigurationError": ErrorType.CONFIGURATION,
        "ExternalServiceError": ErrorType.EXTERNAL_SERVICE,
        "RerankError": ErrorType.EXTERNAL_SERVICE,
    }

    error_type = error_type_map.get(type(exc).__name__, ErrorType.INTERNAL)

    return ErrorResponse(
        error_type=error_type,
        message=exc.message,
        error_id=exc.id,
        context=exc.context,
        suggestions=exc.suggestions or None,
        code=exc.code,
    )


__all__ = [
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
]

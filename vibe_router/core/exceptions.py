"""
Custom exceptions for the provider routing core.

This module provides the exception hierarchy raised by adapters, the
resilience layer and the router. All exceptions inherit from
VibeRouterException and carry an error code for consistent handling in
logs and API responses.

Provider failures are classified once, at the adapter boundary, into a
closed ProviderErrorKind. Whether an error is retryable is derived from its
kind, so an adapter cannot produce an unclassified failure.

Reference:
- Release It! (Nygard): Stability patterns, fail fast on permanent errors
- GUIDELINES: Specific exceptions, always capture with 'as e'
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for router exceptions.

    These codes provide a consistent way to identify error types
    across the API and in logging.
    """

    ROUTER_ERROR = "ROUTER_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    ALL_PROVIDERS_FAILED = "ALL_PROVIDERS_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"


class ProviderErrorKind(str, Enum):
    """
    Closed classification of backend failures.

    Transient conditions (network, rate limit, timeout, 5xx) are retryable;
    permanent ones (bad credentials, bad request, unknown model) are not.
    """

    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    AUTHENTICATION = "authentication"
    BAD_REQUEST = "bad_request"
    MODEL_NOT_FOUND = "model_not_found"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ProviderErrorKind.RATE_LIMIT,
        ProviderErrorKind.NETWORK,
        ProviderErrorKind.TIMEOUT,
        ProviderErrorKind.SERVER,
    }
)


# =============================================================================
# Base Exception
# =============================================================================


class VibeRouterException(Exception):
    """
    Base exception for all routing core errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.ROUTER_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# ConfigurationError
# =============================================================================


class ConfigurationError(VibeRouterException):
    """
    Raised for unknown provider ids or unusable configuration.

    Attributes:
        provider: The offending provider id, if any.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_code: str = ErrorCode.CONFIGURATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.provider = provider


# =============================================================================
# ValidationError
# =============================================================================


class ValidationError(VibeRouterException):
    """
    Raised when caller input is invalid. Never retried.

    Attributes:
        field: Name of the field that failed validation.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = ErrorCode.VALIDATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field


# =============================================================================
# ProviderError and subclasses
# =============================================================================


class ProviderError(VibeRouterException):
    """
    Exception for LLM backend failures.

    Raised by adapters when a backend call fails. The ``kind`` decides
    whether the router retries the same backend or moves on.

    Attributes:
        provider: Backend id (e.g., "anthropic", "openai").
        kind: Closed failure classification.
        model: Model the call was made with (if known).
        status_code: HTTP status code from the backend (if applicable).
    """

    def __init__(
        self,
        message: str,
        provider: str,
        kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: str = ErrorCode.PROVIDER_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.provider = provider
        self.kind = ProviderErrorKind(kind)
        self.model = model
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether the failure is transient."""
        return self.kind.retryable


class AuthenticationError(ProviderError):
    """Credentials were rejected by the backend."""

    def __init__(self, provider: str, model: Optional[str] = None) -> None:
        super().__init__(
            f"Authentication failed for {provider}. Check your API key.",
            provider=provider,
            kind=ProviderErrorKind.AUTHENTICATION,
            model=model,
            status_code=401,
        )


class RateLimitError(ProviderError):
    """
    The backend throttled the request.

    Attributes:
        retry_after: Seconds until the backend accepts requests again.
    """

    def __init__(
        self,
        provider: str,
        model: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        suffix = f" Retry after {retry_after}s." if retry_after else ""
        super().__init__(
            f"Rate limit exceeded for {provider}.{suffix}",
            provider=provider,
            kind=ProviderErrorKind.RATE_LIMIT,
            model=model,
            status_code=429,
        )
        self.retry_after = retry_after


class ModelNotFoundError(ProviderError):
    """The requested model does not exist on the backend."""

    def __init__(self, provider: str, model: str) -> None:
        super().__init__(
            f"Model {model} not available for {provider}",
            provider=provider,
            kind=ProviderErrorKind.MODEL_NOT_FOUND,
            model=model,
            status_code=404,
        )


# =============================================================================
# OperationTimeoutError
# =============================================================================


class OperationTimeoutError(VibeRouterException):
    """
    A single attempt exceeded its time budget. Always retryable.

    Named to avoid shadowing the builtin TimeoutError.

    Attributes:
        operation: Name of the operation that timed out.
        elapsed_seconds: Time spent before giving up.
    """

    retryable = True

    def __init__(
        self,
        operation: str,
        elapsed_seconds: float,
        error_code: str = ErrorCode.TIMEOUT_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"Operation '{operation}' timed out after {elapsed_seconds:.2f}s",
            error_code,
            **kwargs,
        )
        self.operation = operation
        self.elapsed_seconds = elapsed_seconds


# =============================================================================
# AllProvidersFailedError
# =============================================================================


class AllProvidersFailedError(VibeRouterException):
    """
    Every fallback candidate failed, or there was none to try.

    Attributes:
        last_error: The last concrete error observed, if any.
        provider_errors: Error message per attempted backend.
    """

    def __init__(
        self,
        last_error: Optional[BaseException] = None,
        provider_errors: Optional[dict[str, str]] = None,
        error_code: str = ErrorCode.ALL_PROVIDERS_FAILED,
        **kwargs: Any,
    ) -> None:
        message = "All providers failed"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, error_code, **kwargs)
        self.last_error = last_error
        self.provider_errors = provider_errors or {}


def is_retryable(error: BaseException) -> bool:
    """Return True when ``error`` describes a transient condition."""
    return bool(getattr(error, "retryable", False))

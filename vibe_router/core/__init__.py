"""
Core module for the provider routing core.

This module contains configuration and the exception hierarchy.
"""

from vibe_router.core.config import Settings, get_settings
from vibe_router.core.exceptions import (
    AllProvidersFailedError,
    AuthenticationError,
    ConfigurationError,
    ErrorCode,
    ModelNotFoundError,
    OperationTimeoutError,
    ProviderError,
    ProviderErrorKind,
    RateLimitError,
    ValidationError,
    VibeRouterException,
    is_retryable,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "ProviderErrorKind",
    "VibeRouterException",
    "ConfigurationError",
    "ValidationError",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ModelNotFoundError",
    "OperationTimeoutError",
    "AllProvidersFailedError",
    "is_retryable",
]

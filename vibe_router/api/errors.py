"""
Error Translation

Maps router exceptions to HTTP responses. Bodies share one shape:

    {"error": {"code": "...", "message": "...", "type": "...", ...}}

Reference Documents:
- Newman (Building Microservices pp. 273-275): Error translation
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vibe_router.core.exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    OperationTimeoutError,
    ProviderError,
    RateLimitError,
    ValidationError,
    VibeRouterException,
)
from vibe_router.observability.logging import get_logger
from vibe_router.resilience.circuit_breaker import CircuitBreakerError

logger = get_logger(__name__)


def _error_body(code: str, message: str, error_type: str, **extra: Any) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message, "type": error_type}
    error.update({k: v for k, v in extra.items() if v is not None})
    return {"error": error}


def _code(exc: VibeRouterException) -> str:
    return str(getattr(exc.error_code, "value", exc.error_code))


def status_for(exc: VibeRouterException) -> int:
    """HTTP status for a router exception."""
    if isinstance(exc, ConfigurationError):
        return 400
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, RateLimitError):
        return 429
    if isinstance(exc, OperationTimeoutError):
        return 504
    if isinstance(exc, AllProvidersFailedError):
        return 503
    if isinstance(exc, ProviderError):
        return 502
    return 500


async def router_exception_handler(request: Request, exc: VibeRouterException) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request failed",
        path=request.url.path,
        error_code=_code(exc),
        error=exc.message,
        status_code=status_code,
    )

    extra: dict[str, Any] = {}
    if isinstance(exc, ProviderError):
        extra["provider"] = exc.provider
        extra["kind"] = exc.kind.value
    if isinstance(exc, AllProvidersFailedError):
        extra["provider_errors"] = exc.provider_errors or None

    return JSONResponse(
        status_code=status_code,
        content=_error_body(_code(exc), exc.message, type(exc).__name__, **extra),
    )


async def circuit_open_handler(request: Request, exc: CircuitBreakerError) -> JSONResponse:
    logger.warning("circuit open", path=request.url.path, circuit=exc.circuit_name)
    return JSONResponse(
        status_code=503,
        headers={"Retry-After": str(max(1, round(exc.remaining_seconds)))},
        content=_error_body(
            "CIRCUIT_OPEN", str(exc), type(exc).__name__, provider=exc.circuit_name
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VibeRouterException, router_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(CircuitBreakerError, circuit_open_handler)  # type: ignore[arg-type]

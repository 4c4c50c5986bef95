"""
Request Logging Middleware

Binds a correlation id to every request (taken from the X-Request-ID header
or generated), logs method, path, status and duration, and echoes the id
back in the response.

Reference Documents:
- GUIDELINES: Sinha pp. 89-91 (FastAPI middleware patterns)
"""

import time
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vibe_router.observability.logging import correlation_id_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Headers that must never reach the logs (case-insensitive substring match)
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "apikey",
    "api_key",
    "x-auth-token",
    "cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """Replace credential-bearing header values with [REDACTED]."""
    return {
        key: "[REDACTED]"
        if any(pattern in key.lower() for pattern in SENSITIVE_HEADER_PATTERNS)
        else value
        for key, value in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        with correlation_id_context(request.headers.get(REQUEST_ID_HEADER)) as correlation_id:
            logger.debug(
                "request received",
                method=method,
                path=path,
                headers=redact_sensitive_headers(dict(request.headers)),
            )
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "request failed",
                    method=method,
                    path=path,
                    error=f"{type(e).__name__}: {e}",
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                raise

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response

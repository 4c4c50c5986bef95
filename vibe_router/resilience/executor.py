"""
Resilience Executor

Wraps one logical async operation with bounded retries, a per-attempt
timeout, exponential backoff with optional jitter, and optional circuit
breaking.

Reference Documents:
- GUIDELINES pp. 2309: Retry with exponential backoff, timeout configuration
- Release It! (Nygard): Timeouts, circuit breaker, fail fast

The executor keeps no state of its own; everything it needs arrives in
ResilienceOptions.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from vibe_router.core.exceptions import (
    ErrorCode,
    OperationTimeoutError,
    ProviderError,
)
from vibe_router.observability.logging import get_logger
from vibe_router.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerError

T = TypeVar("T")

logger = get_logger(__name__)


DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_BASE_DELAY_SECONDS = 1.0

TERMINAL_ERROR_CODES = frozenset(
    {ErrorCode.VALIDATION_ERROR.value, ErrorCode.INVALID_INPUT.value}
)


def is_terminal_error(error: BaseException) -> bool:
    """
    Whether retrying ``error`` is pointless.

    Terminal: invalid input, non-retryable provider errors, and an open
    circuit (the caller should move on instead of waiting).
    """
    if isinstance(error, CircuitBreakerError):
        return True
    if isinstance(error, ProviderError):
        return not error.retryable
    code = getattr(error, "error_code", None) or getattr(error, "code", None)
    return str(getattr(code, "value", code)) in TERMINAL_ERROR_CODES


def compute_backoff_delay(
    attempt: int,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    jitter: bool = True,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
) -> float:
    """
    Delay in seconds before the attempt following ``attempt``.

    ``base * backoff_factor**attempt``, plus up to one second of uniform
    jitter when enabled.
    """
    delay = base_delay_seconds * (backoff_factor ** attempt)
    if jitter:
        delay += random.uniform(0.0, 1.0)
    return delay


@dataclass
class ResilienceOptions:
    """
    Per-call resilience policy.

    Attributes:
        retries: Extra attempts after the first one
        timeout_seconds: Budget for a single attempt
        backoff_factor: Exponential base between attempts
        jitter: Add up to one second of random delay
        base_delay_seconds: Delay unit for attempt 0
        breaker: Optional circuit breaker gating every attempt
        is_terminal: Predicate deciding that an error must not be retried
    """

    retries: int = DEFAULT_RETRIES
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    jitter: bool = True
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    breaker: Optional[CircuitBreaker] = None
    is_terminal: Callable[[BaseException], bool] = is_terminal_error


class ResilienceExecutor:
    """
    Retry/backoff/timeout wrapper, optionally composed with a breaker.

    Example:
        >>> executor = ResilienceExecutor()
        >>> result = await executor.execute(
        ...     "chat:openai",
        ...     lambda: adapter.chat(messages, options),
        ...     ResilienceOptions(retries=2, breaker=breaker),
        ... )

    Args:
        sleep: Coroutine used to wait between attempts (injectable for tests)
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sleep = sleep

    async def execute(
        self,
        operation_name: str,
        fn: Callable[[], Awaitable[T]],
        options: Optional[ResilienceOptions] = None,
    ) -> T:
        """
        Run ``fn`` under the given policy.

        Args:
            operation_name: Label used in timeout errors and logs
            fn: Zero-argument callable returning a fresh awaitable per attempt
            options: Resilience policy (defaults when omitted)

        Returns:
            The result of the first successful attempt

        Raises:
            OperationTimeoutError: If the last attempt timed out
            CircuitBreakerError: If the breaker rejected the attempt
            Exception: A terminal error immediately, or the last error once
                all attempts are exhausted
        """
        opts = options or ResilienceOptions()
        if opts.retries < 0:
            raise ValueError("retries must be >= 0")
        last_error: Optional[BaseException] = None

        for attempt in range(opts.retries + 1):
            try:
                if opts.breaker is not None:
                    return await opts.breaker.execute(
                        self._with_timeout, fn, opts.timeout_seconds, operation_name
                    )
                return await self._with_timeout(fn, opts.timeout_seconds, operation_name)
            except Exception as e:
                last_error = e

                if opts.is_terminal(e):
                    raise

                if attempt < opts.retries:
                    delay = compute_backoff_delay(
                        attempt,
                        opts.backoff_factor,
                        opts.jitter,
                        opts.base_delay_seconds,
                    )
                    logger.warning(
                        "operation failed, retrying",
                        operation=operation_name,
                        attempt=attempt + 1,
                        delay_seconds=round(delay, 3),
                        error=str(e),
                    )
                    await self._sleep(delay)

        raise last_error  # type: ignore[misc]

    @staticmethod
    async def _with_timeout(
        fn: Callable[[], Awaitable[T]],
        timeout_seconds: float,
        operation_name: str,
    ) -> T:
        started = time.monotonic()
        try:
            return await asyncio.wait_for(fn(), timeout=timeout_seconds)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                operation_name, time.monotonic() - started
            ) from e

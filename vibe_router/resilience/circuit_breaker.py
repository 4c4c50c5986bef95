"""
Circuit Breaker State Machine

This module implements the single circuit breaker used for every backend,
plus a registry that hands out exactly one breaker per backend id.

Reference Documents:
- Building Reactive Microservices in Java (Escoffier) Ch.6, pp.54-62
- Release It! (Nygard): Stability patterns

State Machine:
    CLOSED: Normal operation, all requests pass through
    OPEN: Circuit tripped, requests fail fast with CircuitBreakerError
    HALF_OPEN: Recovery probing, requests pass through until
        ``success_threshold`` consecutive successes close the circuit or a
        single failure re-opens it

The OPEN -> HALF_OPEN transition is checked lazily when a call is attempted;
there is no background timer.

Thread Safety:
    State lives behind a threading.Lock held only for short, non-awaiting
    critical sections. The wrapped call itself always runs outside the lock,
    so a breaker can be shared by coroutines and by threads running their
    own event loops.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from vibe_router.observability.logging import get_logger
from vibe_router.observability.metrics import record_circuit_state_transition

T = TypeVar("T")

logger = get_logger(__name__)


DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_SUCCESS_THRESHOLD = 2
DEFAULT_RESET_TIMEOUT_SECONDS = 30.0


# =============================================================================
# State Enum
# =============================================================================


class CircuitState(Enum):
    """
    State of a circuit breaker.

    Per *Building Reactive Microservices in Java*:
    "A circuit breaker is a three-state automaton that manages an interaction.
    It starts in a closed state, switches to open after N failures,
    and goes to half-open after cooldown to probe recovery."
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# =============================================================================
# Exception Class
# =============================================================================


class CircuitBreakerError(Exception):
    """
    Raised when a call is rejected because the circuit is open.

    The router treats this as "skip this backend", never as a terminal
    failure of the whole request.

    Attributes:
        circuit_name: Name of the circuit breaker that is open
        remaining_seconds: Cooldown left before a probe is admitted
    """

    retryable = False

    def __init__(self, circuit_name: str, remaining_seconds: float) -> None:
        self.circuit_name = circuit_name
        self.remaining_seconds = max(0.0, remaining_seconds)
        super().__init__(
            f"CircuitBreakerError[{circuit_name}]: circuit is open, "
            f"{self.remaining_seconds * 1000:.0f}ms remaining"
        )


# =============================================================================
# Configuration and Stats
# =============================================================================


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    Thresholds for one circuit breaker.

    Attributes:
        failure_threshold: Consecutive CLOSED failures that open the circuit
        success_threshold: Consecutive HALF_OPEN successes that close it
        reset_timeout_seconds: Cooldown before an OPEN circuit admits a probe
    """

    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    success_threshold: int = DEFAULT_SUCCESS_THRESHOLD
    reset_timeout_seconds: float = DEFAULT_RESET_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if self.reset_timeout_seconds <= 0:
            raise ValueError("reset_timeout_seconds must be > 0")


@dataclass(frozen=True)
class CircuitBreakerStats:
    """Point-in-time copy of a breaker's counters."""

    state: CircuitState
    failure_count: int
    success_count: int
    total_requests: int
    total_failures: int
    last_failure_time: Optional[datetime]
    last_state_change: datetime
    opened_at: Optional[float] = None


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreaker:
    """
    Circuit breaker protecting one backend.

    Example:
        >>> breaker = CircuitBreaker("anthropic", CircuitBreakerConfig(failure_threshold=3))
        >>> response = await breaker.execute(lambda: adapter.chat(messages, options))

    Args:
        name: Identifier used in errors, logs and metrics
        config: Thresholds (defaults when omitted)
        clock: Monotonic clock in seconds; injectable for tests
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._total_requests = 0
        self._total_failures = 0
        self._opened_at: Optional[float] = None
        self._last_failure_time: Optional[datetime] = None
        self._last_state_change = datetime.now(timezone.utc)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """
        Current stored state.

        Reading the state never performs the lazy OPEN -> HALF_OPEN
        transition; only an attempted call does.
        """
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    # =========================================================================
    # Guards
    # =========================================================================

    def _remaining_cooldown(self) -> float:
        opened_at = self._opened_at if self._opened_at is not None else self._clock()
        elapsed = self._clock() - opened_at
        return self._config.reset_timeout_seconds - elapsed

    def can_execute(self) -> bool:
        """
        Whether a call would be admitted right now.

        Pure check: never changes state.
        """
        with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            return self._remaining_cooldown() <= 0

    def _acquire(self) -> None:
        """Admit one call or raise CircuitBreakerError."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self._remaining_cooldown()
                if remaining > 0:
                    raise CircuitBreakerError(self._name, remaining)
                self._transition_to(CircuitState.HALF_OPEN)
            self._total_requests += 1

    # =========================================================================
    # Outcome Recording
    # =========================================================================

    def on_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self._config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def on_failure(self) -> None:
        """Record a failed call."""
        with self._lock:
            self._total_failures += 1
            self._last_failure_time = datetime.now(timezone.utc)
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self._config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Change state. Caller must hold the lock."""
        old_state = self._state
        self._state = new_state
        self._last_state_change = datetime.now(timezone.utc)
        self._failure_count = 0
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()

        record_circuit_state_transition(self._name, new_state.value, old_state.value)
        logger.info(
            "circuit state changed",
            circuit=self._name,
            from_state=old_state.value,
            to_state=new_state.value,
        )

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function through the circuit breaker.

        Raises:
            CircuitBreakerError: If the circuit is open and cooling down
            Exception: Whatever the wrapped function raised, unchanged
        """
        self._acquire()

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.on_failure()
            raise
        self.on_success()
        return result

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_stats(self) -> CircuitBreakerStats:
        with self._lock:
            return CircuitBreakerStats(
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                total_requests=self._total_requests,
                total_failures=self._total_failures,
                last_failure_time=self._last_failure_time,
                last_state_change=self._last_state_change,
                opened_at=self._opened_at,
            )

    def reset(self) -> None:
        """Return to a fresh CLOSED breaker with zeroed counters."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._total_requests = 0
            self._total_failures = 0
            self._opened_at = None
            self._last_failure_time = None
            self._last_state_change = datetime.now(timezone.utc)


# =============================================================================
# Breaker Registry
# =============================================================================


class CircuitBreakerRegistry:
    """
    One lazily-created breaker per backend id.

    Example:
        >>> registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=3))
        >>> registry.get("openai") is registry.get("openai")
        True
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        """Get the breaker for ``name``, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, self._config, clock=self._clock)
                self._breakers[name] = breaker
            return breaker

    def peek(self, name: str) -> Optional[CircuitBreaker]:
        """Get the breaker for ``name`` without creating one."""
        with self._lock:
            return self._breakers.get(name)

    def get_all_stats(self) -> dict[str, CircuitBreakerStats]:
        with self._lock:
            breakers = list(self._breakers.items())
        return {name: breaker.get_stats() for name, breaker in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

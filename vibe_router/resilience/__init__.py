"""
Resilience patterns for the routing core.

This package provides:
- CircuitBreaker: per-backend CLOSED/OPEN/HALF_OPEN state machine
- CircuitBreakerRegistry: one lazily-created breaker per backend id
- ResilienceExecutor: retries, per-attempt timeout and backoff

Reference Documents:
- Building Reactive Microservices in Java (Escoffier): Circuit breaker pattern
- Release It! (Nygard): Stability patterns
"""

from vibe_router.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CircuitState,
)
from vibe_router.resilience.executor import (
    ResilienceExecutor,
    ResilienceOptions,
    compute_backoff_delay,
    is_terminal_error,
)

__all__ = [
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    "CircuitState",
    # Executor
    "ResilienceExecutor",
    "ResilienceOptions",
    "compute_backoff_delay",
    "is_terminal_error",
]

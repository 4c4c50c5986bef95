"""
Prometheus Metrics Module

This module provides Prometheus metrics for the routing core: backend
requests, errors and latency, token and cost accounting, fallback attempts,
and circuit breaker state transitions.

Reference Documents:
- GUIDELINES pp. 2309-2319: "Prometheus for metrics collection and structured logging"
- Newman (Building Microservices pp. 273-275): Services "expose basic
  metrics themselves" including "response times and error rates"

Metric names are module constants so tests and dashboards share one spelling.
"""

from typing import Any, Callable

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    make_asgi_app,
)

# =============================================================================
# Metric Names
# =============================================================================

METRIC_PROVIDER_REQUESTS = "vibe_router_provider_requests_total"
METRIC_PROVIDER_ERRORS = "vibe_router_provider_errors_total"
METRIC_PROVIDER_LATENCY = "vibe_router_provider_latency_seconds"
METRIC_TOKENS = "vibe_router_tokens_total"
METRIC_REQUEST_COST = "vibe_router_request_cost_dollars"
METRIC_FALLBACK_ATTEMPTS = "vibe_router_fallback_attempts_total"
METRIC_FALLBACK_SUCCESSES = "vibe_router_fallback_successes_total"
METRIC_CIRCUIT_TRANSITIONS = "vibe_router_circuit_breaker_state_transitions_total"
METRIC_CIRCUIT_STATE = "vibe_router_circuit_breaker_state"


# =============================================================================
# Backend Metrics
# =============================================================================

PROVIDER_REQUESTS_TOTAL = Counter(
    name=METRIC_PROVIDER_REQUESTS,
    documentation="Total backend chat calls by outcome",
    labelnames=["provider", "model", "status"],
)

PROVIDER_ERRORS_TOTAL = Counter(
    name=METRIC_PROVIDER_ERRORS,
    documentation="Total backend failures by error kind",
    labelnames=["provider", "kind"],
)

PROVIDER_LATENCY_SECONDS = Histogram(
    name=METRIC_PROVIDER_LATENCY,
    documentation="Backend chat call latency in seconds",
    labelnames=["provider", "model"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

TOKEN_USAGE_TOTAL = Counter(
    name=METRIC_TOKENS,
    documentation="Total number of tokens used",
    labelnames=["provider", "model", "type"],
)

REQUEST_COST_DOLLARS = Histogram(
    name=METRIC_REQUEST_COST,
    documentation="Request cost in dollars",
    labelnames=["provider", "model"],
    buckets=(0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)


def record_provider_request(provider: str, model: str, status: str) -> None:
    """
    Record one backend chat call.

    Args:
        provider: Backend id
        model: Model name
        status: "success" or "error"
    """
    PROVIDER_REQUESTS_TOTAL.labels(provider=provider, model=model, status=status).inc()


def record_provider_error(provider: str, kind: str) -> None:
    """
    Record a backend failure.

    Args:
        provider: Backend id
        kind: ProviderErrorKind value, "timeout" or "circuit_open"
    """
    PROVIDER_ERRORS_TOTAL.labels(provider=provider, kind=kind).inc()


def record_provider_latency(provider: str, model: str, seconds: float) -> None:
    """Record the latency of a successful backend call."""
    PROVIDER_LATENCY_SECONDS.labels(provider=provider, model=model).observe(seconds)


def record_token_usage(
    provider: str,
    model: str,
    token_type: str,
    count: int,
) -> None:
    """
    Record token usage for an LLM request.

    Args:
        provider: Backend id
        model: Model name
        token_type: Type of tokens (prompt, output)
        count: Number of tokens
    """
    TOKEN_USAGE_TOTAL.labels(provider=provider, model=model, type=token_type).inc(count)


def record_request_cost(provider: str, model: str, cost: float) -> None:
    """Record the cost of an LLM request in dollars."""
    REQUEST_COST_DOLLARS.labels(provider=provider, model=model).observe(cost)


# =============================================================================
# Fallback Metrics
# =============================================================================

FALLBACK_ATTEMPTS = Counter(
    name=METRIC_FALLBACK_ATTEMPTS,
    documentation="Total number of fallback backend attempts",
    labelnames=["strategy", "provider"],
)

FALLBACK_SUCCESSES = Counter(
    name=METRIC_FALLBACK_SUCCESSES,
    documentation="Total number of requests served by a fallback backend",
    labelnames=["strategy", "provider"],
)


def record_fallback_attempt(strategy: str, provider: str) -> None:
    """Record that a fallback candidate is being tried."""
    FALLBACK_ATTEMPTS.labels(strategy=strategy, provider=provider).inc()


def record_fallback_success(strategy: str, provider: str) -> None:
    """Record that a fallback candidate served the request."""
    FALLBACK_SUCCESSES.labels(strategy=strategy, provider=provider).inc()


# =============================================================================
# Circuit Breaker Metrics
# =============================================================================

CIRCUIT_STATE_TRANSITIONS = Counter(
    name=METRIC_CIRCUIT_TRANSITIONS,
    documentation="Total number of circuit breaker state transitions",
    labelnames=["circuit_name", "to_state", "from_state"],
)

CIRCUIT_STATE_GAUGE = Gauge(
    name=METRIC_CIRCUIT_STATE,
    documentation="Current state of circuit breaker (0=closed, 1=half_open, 2=open)",
    labelnames=["circuit_name"],
)

_STATE_TO_NUMERIC = {
    "closed": 0,
    "half_open": 1,
    "open": 2,
}


def record_circuit_state_transition(
    circuit_name: str,
    to_state: str,
    from_state: str,
) -> None:
    """
    Record a circuit breaker state transition and update the state gauge.

    Args:
        circuit_name: Name of the circuit breaker
        to_state: State transitioning to (closed, open, half_open)
        from_state: State transitioning from (closed, open, half_open)
    """
    CIRCUIT_STATE_TRANSITIONS.labels(
        circuit_name=circuit_name,
        to_state=to_state,
        from_state=from_state,
    ).inc()

    CIRCUIT_STATE_GAUGE.labels(circuit_name=circuit_name).set(
        _STATE_TO_NUMERIC.get(to_state, 0)
    )


# =============================================================================
# Metrics Endpoint
# =============================================================================


def get_metrics_app() -> Callable[..., Any]:
    """
    Get ASGI app for the /metrics endpoint.

    Returns:
        ASGI application that serves Prometheus metrics
    """
    return make_asgi_app()


def generate_metrics() -> str:
    """
    Generate Prometheus metrics text format.

    Returns:
        Prometheus exposition format text
    """
    return generate_latest(REGISTRY).decode("utf-8")

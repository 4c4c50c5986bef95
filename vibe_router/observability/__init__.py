"""
Observability Package

This package provides structured JSON logging (structlog) and Prometheus
metrics for the routing core.

Reference Documents:
- GUIDELINES pp. 2309-2319: Observability = metrics + logging + cost tracking
"""

from vibe_router.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from vibe_router.observability.metrics import (
    generate_metrics,
    get_metrics_app,
    record_circuit_state_transition,
    record_fallback_attempt,
    record_fallback_success,
    record_provider_error,
    record_provider_latency,
    record_provider_request,
    record_request_cost,
    record_token_usage,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Metrics
    "get_metrics_app",
    "generate_metrics",
    "record_provider_request",
    "record_provider_error",
    "record_provider_latency",
    "record_token_usage",
    "record_request_cost",
    "record_fallback_attempt",
    "record_fallback_success",
    "record_circuit_state_transition",
]

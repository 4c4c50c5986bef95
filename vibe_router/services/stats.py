"""
Stats Tracker

Aggregates request counts, tokens, cost and latency for one router.

Average latency is maintained as an incremental mean over successful
requests, so no sample history is kept:

    new_avg = (old_avg * (n - 1) + latest) / n

Mutation happens in a short lock-guarded section that never awaits.
"""

import threading

from vibe_router.models.chat import ProviderResponse, RouterStats


class StatsTracker:
    """
    Thread-safe accumulator behind ``ProviderRouter.get_stats()``.

    Example:
        >>> tracker = StatsTracker()
        >>> tracker.record_success(response)
        >>> tracker.snapshot().successful_requests
        1
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats = RouterStats()

    def record_success(self, response: ProviderResponse) -> None:
        with self._lock:
            stats = self._stats
            stats.total_requests += 1
            stats.successful_requests += 1
            stats.total_tokens += response.usage.total_tokens
            stats.total_cost += response.usage.cost or 0.0

            n = stats.successful_requests
            stats.average_latency_ms = (
                stats.average_latency_ms * (n - 1) + (response.latency_ms or 0.0)
            ) / n

    def record_failure(self) -> None:
        with self._lock:
            self._stats.total_requests += 1
            self._stats.failed_requests += 1

    def snapshot(self) -> RouterStats:
        """Return a copy that later mutations do not affect."""
        with self._lock:
            return self._stats.model_copy()

    def reset(self) -> None:
        with self._lock:
            self._stats = RouterStats()

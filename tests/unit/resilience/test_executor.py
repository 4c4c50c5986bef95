"""
Tests for the resilience executor: retries, backoff, timeouts and breaker
composition.

Reference Documents:
- GUIDELINES pp. 2309: Retry with exponential backoff, timeout configuration

Backoff sleeps go through RecordingSleep, so the delays the executor asks for
can be asserted without waiting.
"""

import asyncio
from unittest.mock import patch

import pytest

from tests.doubles import FakeClock, RecordingSleep
from vibe_router.core.exceptions import (
    AuthenticationError,
    OperationTimeoutError,
    ProviderError,
    ProviderErrorKind,
    ValidationError,
)
from vibe_router.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)
from vibe_router.resilience.executor import (
    ResilienceExecutor,
    ResilienceOptions,
    compute_backoff_delay,
    is_terminal_error,
)


class Flaky:
    """Zero-argument operation that fails a fixed number of times."""

    def __init__(self, failures: list[BaseException], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def server_error() -> ProviderError:
    return ProviderError("502 bad gateway", "primary", ProviderErrorKind.SERVER)


class TestComputeBackoffDelay:
    @pytest.mark.parametrize(
        "attempt,expected",
        [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0)],
    )
    def test_exponential_without_jitter(self, attempt: int, expected: float) -> None:
        assert compute_backoff_delay(attempt, backoff_factor=2.0, jitter=False) == expected

    def test_base_delay_scales(self) -> None:
        assert compute_backoff_delay(2, backoff_factor=3.0, jitter=False, base_delay_seconds=0.5) == 4.5

    def test_jitter_adds_at_most_one_second(self) -> None:
        with patch("vibe_router.resilience.executor.random.uniform", return_value=0.75) as uniform:
            delay = compute_backoff_delay(1, backoff_factor=2.0, jitter=True)

        uniform.assert_called_once_with(0.0, 1.0)
        assert delay == 2.75


class TestIsTerminalError:
    def test_non_retryable_provider_error(self) -> None:
        assert is_terminal_error(AuthenticationError("openai")) is True

    def test_retryable_provider_error(self) -> None:
        assert is_terminal_error(server_error()) is False

    def test_circuit_open(self) -> None:
        assert is_terminal_error(CircuitBreakerError("openai", 1.0)) is True

    def test_validation_error(self) -> None:
        assert is_terminal_error(ValidationError("bad input", field="messages")) is True

    def test_unclassified_error_is_retried(self) -> None:
        assert is_terminal_error(RuntimeError("boom")) is False


class TestRetries:
    @pytest.mark.asyncio
    async def test_returns_first_success(self, executor: ResilienceExecutor) -> None:
        op = Flaky([])

        assert await executor.execute("op", op, ResilienceOptions(retries=3)) == "ok"
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failures(
        self, executor: ResilienceExecutor, recording_sleep: RecordingSleep
    ) -> None:
        op = Flaky([server_error(), server_error()])

        result = await executor.execute(
            "op", op, ResilienceOptions(retries=2, jitter=False, backoff_factor=2.0)
        )

        assert result == "ok"
        assert op.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(
        self, executor: ResilienceExecutor, recording_sleep: RecordingSleep
    ) -> None:
        last = ProviderError("still down", "primary", ProviderErrorKind.NETWORK)
        op = Flaky([server_error(), server_error(), last])

        with pytest.raises(ProviderError) as exc_info:
            await executor.execute("op", op, ResilienceOptions(retries=2, jitter=False))

        assert exc_info.value is last
        assert op.calls == 3
        # no sleep after the final attempt
        assert len(recording_sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(
        self, executor: ResilienceExecutor, recording_sleep: RecordingSleep
    ) -> None:
        op = Flaky([server_error()])

        with pytest.raises(ProviderError):
            await executor.execute("op", op, ResilienceOptions(retries=0))

        assert op.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_terminal_error_is_not_retried(
        self, executor: ResilienceExecutor, recording_sleep: RecordingSleep
    ) -> None:
        op = Flaky([AuthenticationError("primary")])

        with pytest.raises(AuthenticationError):
            await executor.execute("op", op, ResilienceOptions(retries=3))

        assert op.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_terminal_predicate(self, executor: ResilienceExecutor) -> None:
        op = Flaky([KeyError("missing")])

        with pytest.raises(KeyError):
            await executor.execute(
                "op",
                op,
                ResilienceOptions(retries=3, is_terminal=lambda e: isinstance(e, KeyError)),
            )

        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_negative_retries_rejected(self, executor: ResilienceExecutor) -> None:
        op = Flaky([])

        with pytest.raises(ValueError):
            await executor.execute("op", op, ResilienceOptions(retries=-1))

        assert op.calls == 0


class TestTimeout:
    @pytest.mark.asyncio
    async def test_slow_attempt_raises_operation_timeout(self, executor: ResilienceExecutor) -> None:
        async def slow() -> str:
            await asyncio.sleep(5)
            return "late"

        with pytest.raises(OperationTimeoutError) as exc_info:
            await executor.execute(
                "chat:slow", slow, ResilienceOptions(retries=0, timeout_seconds=0.01)
            )

        assert exc_info.value.operation == "chat:slow"
        assert exc_info.value.retryable is True
        assert "chat:slow" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_is_retried(
        self, executor: ResilienceExecutor, recording_sleep: RecordingSleep
    ) -> None:
        calls = []

        async def slow_then_fast() -> str:
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(5)
            return "ok"

        result = await executor.execute(
            "op",
            slow_then_fast,
            ResilienceOptions(retries=1, timeout_seconds=0.05, jitter=False),
        )

        assert result == "ok"
        assert len(calls) == 2
        assert recording_sleep.delays == [1.0]


class TestWithCircuitBreaker:
    @pytest.fixture
    def breaker(self, fake_clock: FakeClock) -> CircuitBreaker:
        return CircuitBreaker(
            "primary",
            CircuitBreakerConfig(failure_threshold=2, success_threshold=1, reset_timeout_seconds=1.0),
            clock=fake_clock,
        )

    @pytest.mark.asyncio
    async def test_every_attempt_counts_against_breaker(
        self, executor: ResilienceExecutor, breaker: CircuitBreaker
    ) -> None:
        op = Flaky([server_error(), server_error(), server_error()])

        with pytest.raises(CircuitBreakerError):
            await executor.execute("op", op, ResilienceOptions(retries=2, breaker=breaker))

        # third attempt rejected by the open breaker without calling op
        assert op.calls == 2
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_breaker_fails_fast(
        self,
        executor: ResilienceExecutor,
        breaker: CircuitBreaker,
        recording_sleep: RecordingSleep,
    ) -> None:
        await executor.execute("op", Flaky([]), ResilienceOptions(breaker=breaker))
        with pytest.raises(ProviderError):
            await executor.execute(
                "op", Flaky([server_error(), server_error()]),
                ResilienceOptions(retries=1, breaker=breaker, jitter=False),
            )
        recording_sleep.delays.clear()
        op = Flaky([])

        with pytest.raises(CircuitBreakerError):
            await executor.execute("op", op, ResilienceOptions(retries=3, breaker=breaker))

        assert op.calls == 0
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_success_through_breaker(
        self, executor: ResilienceExecutor, breaker: CircuitBreaker
    ) -> None:
        result = await executor.execute("op", Flaky([]), ResilienceOptions(breaker=breaker))

        assert result == "ok"
        assert breaker.get_stats().total_requests == 1

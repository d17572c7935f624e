"""Unit tests for the retry executor and backoff computation."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from hypothesis import given, settings, strategies as st
from telegram.error import BadRequest, Conflict, NetworkError, TimedOut

from relay.enums import ExecutionOutcome
from relay.errors import FatalConflictError, RetryableTransportError
from relay.scheduler.circuit_breaker import CircuitBreaker
from relay.scheduler.retry_executor import RetryAttemptContext, RetryExecutor, backoff_delay


def make_executor(breaker=None, **kwargs):
    kwargs.setdefault("sleep", AsyncMock())
    kwargs.setdefault("rng", lambda: 0.0)
    kwargs.setdefault("on_fatal_conflict", MagicMock())
    return RetryExecutor(breaker or CircuitBreaker(), **kwargs)


class TestBackoffDelay:
    def test_doubles_per_retry(self):
        assert backoff_delay(1, rng=lambda: 0.0) == 2.0
        assert backoff_delay(2, rng=lambda: 0.0) == 4.0
        assert backoff_delay(3, rng=lambda: 0.0) == 8.0

    def test_capped_at_max_delay(self):
        assert backoff_delay(10, rng=lambda: 0.0) == 30.0

    def test_adds_jitter(self):
        assert backoff_delay(1, rng=lambda: 0.5) == 2.5

    @settings(max_examples=200)
    @given(
        retry_count=st.integers(min_value=1, max_value=20),
        r=st.floats(min_value=0, max_value=0.999999, allow_nan=False),
    )
    def test_delay_stays_within_bounds(self, retry_count: int, r: float):
        delay = backoff_delay(retry_count, rng=lambda: r)

        base = min(2.0**retry_count, 30.0)
        assert base <= delay < base + 1.0
        assert delay < 31.0


class TestRetryAttemptContext:
    def test_can_retry_until_max(self):
        ctx = RetryAttemptContext(max_retries=2)
        assert ctx.can_retry
        ctx.retry_count = 2
        assert not ctx.can_retry


class TestRetryExecutorSuccess:
    async def test_success_returns_delivered_and_resets_breaker(self):
        breaker = CircuitBreaker()
        breaker.record_failure()
        executor = make_executor(breaker)

        outcome = await executor.execute(1, AsyncMock(return_value="sent"))

        assert outcome is ExecutionOutcome.DELIVERED
        assert breaker.failures == 0

    async def test_none_result_is_nothing_to_send(self):
        breaker = CircuitBreaker()
        breaker.record_failure()
        executor = make_executor(breaker)

        outcome = await executor.execute(1, AsyncMock(return_value=None))

        assert outcome is ExecutionOutcome.NOTHING_TO_SEND
        assert breaker.failures == 0

    async def test_open_breaker_skips_without_calling_action(self):
        breaker = CircuitBreaker(max_failures=1)
        breaker.record_failure()
        action = AsyncMock()
        executor = make_executor(breaker)

        outcome = await executor.execute(1, action)

        assert outcome is ExecutionOutcome.SKIPPED_CIRCUIT_OPEN
        action.assert_not_awaited()


class TestRetryExecutorTransportErrors:
    async def test_three_failures_then_success(self):
        """ECONNRESET x3 then success: three backoff sleeps, breaker cleared."""
        breaker = CircuitBreaker()
        sleep = AsyncMock()
        action = AsyncMock(
            side_effect=[
                RetryableTransportError("ECONNRESET"),
                RetryableTransportError("ECONNRESET"),
                RetryableTransportError("ECONNRESET"),
                "sent",
            ]
        )
        executor = make_executor(breaker, sleep=sleep)

        outcome = await executor.execute(42, action)

        assert outcome is ExecutionOutcome.DELIVERED
        assert action.await_count == 4
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0, 8.0]
        assert breaker.failures == 0

    async def test_raw_telegram_network_errors_are_retried(self):
        sleep = AsyncMock()
        action = AsyncMock(side_effect=[TimedOut(), NetworkError("reset"), "sent"])
        executor = make_executor(sleep=sleep)

        outcome = await executor.execute(1, action)

        assert outcome is ExecutionOutcome.DELIVERED
        assert sleep.await_count == 2

    async def test_retries_exhausted_raises_last_error(self):
        breaker = CircuitBreaker(max_failures=100)
        sleep = AsyncMock()
        errors = [RetryableTransportError(f"fail {i}") for i in range(3)]
        action = AsyncMock(side_effect=errors)
        executor = make_executor(breaker, max_retries=2, sleep=sleep)

        with pytest.raises(RetryableTransportError) as exc_info:
            await executor.execute(1, action)

        assert exc_info.value is errors[-1]
        assert action.await_count == 3
        assert sleep.await_count == 2
        assert breaker.failures == 3

    async def test_breaker_trip_abandons_attempt(self):
        breaker = CircuitBreaker(max_failures=2)
        sleep = AsyncMock()
        action = AsyncMock(side_effect=RetryableTransportError("reset"))
        executor = make_executor(breaker, sleep=sleep)

        outcome = await executor.execute(1, action)

        assert outcome is ExecutionOutcome.SKIPPED_CIRCUIT_OPEN
        assert action.await_count == 2
        assert sleep.await_count == 1
        assert breaker.is_open() is True

    async def test_zero_retries_still_counts_failure(self):
        breaker = CircuitBreaker()
        executor = make_executor(breaker, max_retries=0)

        with pytest.raises(RetryableTransportError):
            await executor.execute(1, AsyncMock(side_effect=RetryableTransportError("x")))

        assert breaker.failures == 1


class TestRetryExecutorOtherErrors:
    async def test_unclassified_error_propagates_immediately(self):
        breaker = CircuitBreaker()
        sleep = AsyncMock()
        action = AsyncMock(side_effect=ValueError("boom"))
        executor = make_executor(breaker, sleep=sleep)

        with pytest.raises(ValueError, match="boom"):
            await executor.execute(1, action)

        assert action.await_count == 1
        sleep.assert_not_awaited()
        assert breaker.failures == 0

    async def test_bad_request_is_not_retried(self):
        sleep = AsyncMock()
        executor = make_executor(sleep=sleep)

        with pytest.raises(BadRequest):
            await executor.execute(1, AsyncMock(side_effect=BadRequest("chat not found")))

        sleep.assert_not_awaited()

    async def test_fatal_conflict_terminates(self):
        on_fatal = MagicMock()
        breaker = CircuitBreaker()
        action = AsyncMock(side_effect=FatalConflictError("409"))
        executor = make_executor(breaker, on_fatal_conflict=on_fatal)

        with pytest.raises(FatalConflictError):
            await executor.execute(1, action)

        on_fatal.assert_called_once()
        assert action.await_count == 1
        assert breaker.failures == 0

    async def test_raw_telegram_conflict_is_wrapped(self):
        on_fatal = MagicMock()
        executor = make_executor(on_fatal_conflict=on_fatal)

        with pytest.raises(FatalConflictError) as exc_info:
            await executor.execute(1, AsyncMock(side_effect=Conflict("terminated by other getUpdates")))

        assert isinstance(exc_info.value.__cause__, Conflict)
        on_fatal.assert_called_once()

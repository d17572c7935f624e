"""Retry with exponential backoff for a single conversation's response.

Failures are handled by kind:
- fatal conflict: another bot instance is active, the process terminates
- retryable transport: counted by the circuit breaker, retried with backoff
- anything else: propagated to the caller immediately
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from relay.enums import ErrorKind, ExecutionOutcome
from relay.errors import FatalConflictError, classify_error
from relay.observability.health_state import terminate_process
from relay.observability.trace_logging import trace_event
from relay.scheduler.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


def backoff_delay(
    retry_count: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: float = 1.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait before retry number `retry_count` (1-indexed).

    `min(base_delay * 2**retry_count, max_delay)` plus a random jitter in
    `[0, jitter)` so retries across conversations do not line up.
    """
    delay = min(base_delay * (2**retry_count), max_delay)
    return delay + rng() * jitter


@dataclass
class RetryAttemptContext:
    """Retry bookkeeping for one `execute()` call."""

    max_retries: int
    retry_count: int = 0
    last_error: BaseException | None = None

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries


class RetryExecutor:
    """Runs a response action with bounded retries and breaker accounting.

    The circuit breaker is global: a success for any conversation clears
    failures recorded for every other conversation.
    """

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        on_fatal_conflict: Callable[[BaseException], Any] = terminate_process,
    ) -> None:
        """Initialize the executor.

        Args:
            circuit_breaker: Shared breaker updated on every outcome.
            max_retries: Retries allowed after the first attempt.
            base_delay: Backoff base in seconds.
            max_delay: Backoff cap in seconds (before jitter).
            jitter: Upper bound of the random jitter in seconds.
            sleep: Awaitable sleep, injectable for tests.
            rng: Random source in [0, 1), injectable for tests.
            on_fatal_conflict: Called when another bot instance is detected.
                Defaults to terminating the process.
        """
        self.circuit_breaker = circuit_breaker
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng
        self._on_fatal_conflict = on_fatal_conflict

    def compute_delay(self, retry_count: int) -> float:
        return backoff_delay(
            retry_count,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
            rng=self._rng,
        )

    async def execute(
        self,
        chat_id: int,
        action: Callable[[], Awaitable[Any]],
    ) -> ExecutionOutcome:
        """Run `action` for a chat until it succeeds or must give up.

        Args:
            chat_id: Conversation being processed (for logs).
            action: Sends typing, generates and delivers a response. Returns
                None when there was nothing to send.

        Returns:
            DELIVERED or NOTHING_TO_SEND on success, SKIPPED_CIRCUIT_OPEN when
            the breaker was open or tripped during this call.

        Raises:
            FatalConflictError: After `on_fatal_conflict` returns (tests).
            Exception: Unclassified errors, or the last transport error once
                retries are exhausted.
        """
        if self.circuit_breaker.is_open():
            logger.warning("Circuit breaker is open, skipping chat %s", chat_id)
            return ExecutionOutcome.SKIPPED_CIRCUIT_OPEN

        ctx = RetryAttemptContext(max_retries=self.max_retries)

        while True:
            if ctx.retry_count > 0:
                delay = self.compute_delay(ctx.retry_count)
                logger.debug("Waiting %.2fs before retry for chat %s", delay, chat_id)
                await self._sleep(delay)

            try:
                result = await action()
            except Exception as exc:
                ctx.last_error = exc
                kind = classify_error(exc)

                if kind is ErrorKind.FATAL_CONFLICT:
                    logger.critical(
                        "Conflict for chat %s: another bot instance is running. Shutting down.",
                        chat_id,
                    )
                    trace_event("executor.fatal_conflict", chat_id=chat_id, error=str(exc))
                    self._on_fatal_conflict(exc)
                    if isinstance(exc, FatalConflictError):
                        raise
                    raise FatalConflictError(str(exc)) from exc

                if kind is not ErrorKind.RETRYABLE_TRANSPORT:
                    logger.error("Unhandled error for chat %s: %s", chat_id, exc)
                    raise

                logger.warning("Transport error for chat %s: %s", chat_id, exc)
                if self.circuit_breaker.record_failure():
                    logger.error(
                        "Circuit breaker tripped while processing chat %s, abandoning attempt",
                        chat_id,
                    )
                    return ExecutionOutcome.SKIPPED_CIRCUIT_OPEN

                if not ctx.can_retry:
                    logger.error(
                        "Retries exhausted for chat %s after %d attempts",
                        chat_id,
                        ctx.retry_count + 1,
                    )
                    raise

                ctx.retry_count += 1
                logger.warning(
                    "Connection error, attempt %d/%d for chat %s",
                    ctx.retry_count,
                    ctx.max_retries,
                    chat_id,
                )
                trace_event(
                    "executor.retry",
                    chat_id=chat_id,
                    attempt=ctx.retry_count,
                    error=str(exc),
                )
                continue

            self.circuit_breaker.reset()
            if result is None:
                return ExecutionOutcome.NOTHING_TO_SEND
            return ExecutionOutcome.DELIVERED

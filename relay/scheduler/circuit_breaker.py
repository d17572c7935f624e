"""Global circuit breaker for response delivery.

The breaker has two states:
- CLOSED: normal operation, transient transport failures are counted
- OPEN: every response attempt is skipped until the timeout elapses

There is no timer: the open -> closed transition happens lazily, the first
time the breaker is queried after `timeout` seconds without a new failure.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from relay.observability.health_state import CircuitBreakerSnapshot
from relay.observability.trace_logging import trace_event

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Failure-count gate shared by every conversation.

    Usage:
        if breaker.is_open():
            return  # skip
        try:
            await deliver()
            breaker.reset()
        except TransientError:
            if breaker.record_failure():
                return  # just tripped

    Attributes:
        max_failures: Failures that open the breaker.
        timeout: Seconds after the last failure before an open breaker closes.
    """

    DEFAULT_MAX_FAILURES = 10
    DEFAULT_TIMEOUT_SECONDS = 300.0

    def __init__(
        self,
        max_failures: int = DEFAULT_MAX_FAILURES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        self.max_failures = max_failures
        self.timeout = timeout
        self._clock = clock

        self._failures = 0
        self._last_failure = 0.0
        self._open = False

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def last_failure(self) -> float:
        return self._last_failure

    def is_open(self) -> bool:
        """Return whether attempts must be skipped.

        An open breaker whose timeout has elapsed since the last failure is
        reset as a side effect and reported closed.
        """
        if not self._open:
            return False

        if self._clock() - self._last_failure >= self.timeout:
            logger.info(
                "Circuit breaker timeout of %.0fs elapsed, closing", self.timeout
            )
            self.reset()
            return False
        return True

    def record_failure(self) -> bool:
        """Count a transient failure.

        Returns:
            True if the breaker is open after this failure.
        """
        self._failures += 1
        self._last_failure = self._clock()

        if self._failures >= self.max_failures and not self._open:
            self._open = True
            logger.error(
                "Circuit breaker opened after %d consecutive transport failures",
                self._failures,
            )
            trace_event("breaker.opened", failures=self._failures, timeout=self.timeout)

        return self._open

    def reset(self) -> None:
        """Close the breaker and clear the failure count."""
        if self._failures or self._open:
            trace_event("breaker.reset", failures=self._failures, was_open=self._open)
        self._failures = 0
        self._last_failure = 0.0
        self._open = False

    def snapshot(self) -> CircuitBreakerSnapshot:
        since = None
        if self._failures:
            since = max(0.0, self._clock() - self._last_failure)
        return CircuitBreakerSnapshot(
            is_open=self._open,
            failures=self._failures,
            max_failures=self.max_failures,
            seconds_since_last_failure=since,
        )

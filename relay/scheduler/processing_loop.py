"""Processing loop that drains due conversations on a fixed interval.

One control task per run sleeps, performs a cycle and decides whether to
continue. Cycles are serialized by a lock, so a run started right after a
stop waits for the old run's cycle to finish. Conversations within a cycle
are handled one at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from relay.errors import FatalConflictError
from relay.observability.health_state import ProcessingLoopSnapshot
from relay.observability.trace_logging import trace_event

if TYPE_CHECKING:
    from relay.conversation.history import ConversationHistoryStore
    from relay.conversation.queue import ConversationQueue
    from relay.scheduler.circuit_breaker import CircuitBreaker
    from relay.scheduler.retry_executor import RetryExecutor

logger = logging.getLogger(__name__)


class ProcessingLoop:
    """Scheduler for response generation across all conversations.

    Each cycle:
    1. exits if the run was stopped while waiting
    2. skips all work while the circuit breaker is open
    3. runs the executor for every due conversation in a snapshot of the
       queue, resetting the error streak on success and counting failures
    4. waits `polling_interval` before the next cycle

    When `max_consecutive_errors` failures happen in a row the loop stops
    itself and starts again after `restart_cooldown` seconds.
    """

    DEFAULT_POLLING_INTERVAL_SECONDS = 33.333
    DEFAULT_INITIAL_DELAY_SECONDS = 1.0
    DEFAULT_MAX_CONSECUTIVE_ERRORS = 5
    DEFAULT_RESTART_COOLDOWN_SECONDS = 30.0

    def __init__(
        self,
        queue: "ConversationQueue",
        history: "ConversationHistoryStore",
        circuit_breaker: "CircuitBreaker",
        executor: "RetryExecutor",
        respond: Callable[[int], Awaitable[Any]],
        polling_interval: float = DEFAULT_POLLING_INTERVAL_SECONDS,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        restart_cooldown: float = DEFAULT_RESTART_COOLDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the processing loop.

        Args:
            queue: Source of known conversation ids.
            history: History store used for the due check.
            circuit_breaker: Breaker consulted before each cycle.
            executor: Retry executor wrapping each response attempt.
            respond: Async callable producing and delivering a reply for a chat.
            polling_interval: Seconds between cycles.
            initial_delay: Seconds before the first cycle of a run.
            max_consecutive_errors: Failures in a row that trigger a restart.
            restart_cooldown: Seconds between a self-stop and the restart.
            sleep: Awaitable sleep used for the restart cooldown.
        """
        self.queue = queue
        self.history = history
        self.circuit_breaker = circuit_breaker
        self.executor = executor
        self.respond = respond
        self.polling_interval = polling_interval
        self.initial_delay = initial_delay
        self.max_consecutive_errors = max_consecutive_errors
        self.restart_cooldown = restart_cooldown
        self._sleep = sleep

        self._active = False
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._restart_task: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()
        self._consecutive_errors = 0
        self._cycles_completed = 0

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    def start(self) -> None:
        """Start a run of the loop. Calling it while active does nothing."""
        if self._active:
            logger.warning("Message processing loop is already active")
            return

        self._active = True
        self._consecutive_errors = 0
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._task = asyncio.create_task(self._run(stop_event), name="processing-loop")

        logger.info(
            "Message processing loop started (first cycle in %.1fs, interval %.1fs)",
            self.initial_delay,
            self.polling_interval,
        )

    def stop(self) -> None:
        """Stop the current run.

        The pending wake-up is cancelled; a cycle already in progress finishes
        its current conversation and the run then ends. A restart that is
        already scheduled is left in place.
        """
        if not self._active:
            return

        self._active = False
        if self._stop_event is not None:
            self._stop_event.set()
        logger.warning("Message processing loop has been stopped")

    async def shutdown(self) -> None:
        """Stop the loop, cancel any pending restart and wait for the run to end."""
        self.stop()

        if self._restart_task is not None and not self._restart_task.done():
            self._restart_task.cancel()
            try:
                await self._restart_task
            except asyncio.CancelledError:
                pass
        self._restart_task = None

        task = self._task
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
            except FatalConflictError:
                logger.debug("Processing loop ended with a fatal conflict")
        self._task = None

    async def _run(self, stop_event: asyncio.Event) -> None:
        delay = self.initial_delay
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

            # This run's own event: a newer run may already be active
            if stop_event.is_set():
                logger.debug("Processing loop run ended")
                return

            if not await self.run_cycle(stop_event):
                return
            delay = self.polling_interval

    async def run_cycle(self, stop_event: asyncio.Event | None = None) -> bool:
        """Process every due conversation once.

        Args:
            stop_event: Stop event of the calling run. Once set, the cycle
                ends before the next conversation.

        Returns:
            False if the cycle was aborted because the loop stopped, True
            otherwise.
        """
        async with self._cycle_lock:
            if stop_event is not None and stop_event.is_set():
                return False
            if not await self._process_due_chats(stop_event):
                return False
            self._cycles_completed += 1
            return True

    async def _process_due_chats(self, stop_event: asyncio.Event | None) -> bool:
        if self.circuit_breaker.is_open():
            logger.warning("Circuit breaker is open, skipping processing cycle")
            return True

        for chat_id in self.queue.get_all_chats():
            if stop_event is not None and stop_event.is_set():
                logger.debug("Run stopped, ending cycle early")
                return False
            if not self.history.is_due(chat_id):
                continue

            try:
                await self.executor.execute(chat_id, lambda c=chat_id: self.respond(c))
            except FatalConflictError:
                raise
            except Exception as e:
                self._consecutive_errors += 1
                logger.error(
                    "Error processing messages for chat %s (%d consecutive): %s",
                    chat_id,
                    self._consecutive_errors,
                    e,
                )
                if self._consecutive_errors >= self.max_consecutive_errors:
                    logger.error("Too many consecutive errors, restarting processing...")
                    self.stop()
                    self._schedule_restart()
                    return False
            else:
                self._consecutive_errors = 0

        return True

    def _schedule_restart(self) -> None:
        if self.restart_pending:
            return
        trace_event(
            "loop.restart_scheduled",
            cooldown=self.restart_cooldown,
            consecutive_errors=self._consecutive_errors,
        )
        self._restart_task = asyncio.create_task(
            self._restart_after_cooldown(), name="processing-loop-restart"
        )

    async def _restart_after_cooldown(self) -> None:
        await self._sleep(self.restart_cooldown)
        logger.info("Restarting message processing loop after %.0fs", self.restart_cooldown)
        self.start()

    def snapshot(self) -> ProcessingLoopSnapshot:
        return ProcessingLoopSnapshot(
            active=self._active,
            restart_pending=self.restart_pending,
            consecutive_errors=self._consecutive_errors,
            cycles_completed=self._cycles_completed,
        )

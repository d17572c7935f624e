"""Process health reporting and last-resort termination.

The health snapshot is served by the `/health` endpoint so a process
supervisor can tell a self-healing relay (restart pending) from a dead one.
"""

from __future__ import annotations

import logging
import os

from relay.models.base import JsonModel

logger = logging.getLogger(__name__)


class CircuitBreakerSnapshot(JsonModel):
    is_open: bool = False
    failures: int = 0
    max_failures: int = 0
    seconds_since_last_failure: float | None = None


class ProcessingLoopSnapshot(JsonModel):
    active: bool = False
    restart_pending: bool = False
    consecutive_errors: int = 0
    cycles_completed: int = 0


class HealthSnapshot(JsonModel):
    service: str = "chat-relay"
    status: str = "healthy"  # healthy | degraded | stopped

    loop: ProcessingLoopSnapshot = ProcessingLoopSnapshot()
    circuit_breaker: CircuitBreakerSnapshot = CircuitBreakerSnapshot()
    conversations: int = 0


def build_health_snapshot(
    loop: ProcessingLoopSnapshot,
    breaker: CircuitBreakerSnapshot,
    conversations: int = 0,
) -> HealthSnapshot:
    if not loop.active and not loop.restart_pending:
        status = "stopped"
    elif breaker.is_open or loop.restart_pending:
        status = "degraded"
    else:
        status = "healthy"
    return HealthSnapshot(
        status=status,
        loop=loop,
        circuit_breaker=breaker,
        conversations=conversations,
    )


def terminate_process(reason: BaseException | str) -> None:
    """Exit immediately so a process supervisor can restart the relay.

    Used when another instance is polling with the same bot token: continuing
    would only produce more conflicts.
    """
    try:
        os.write(2, f"[relay] terminating: {reason}\n".encode("utf-8", errors="ignore"))
    except OSError:
        pass

    logging.shutdown()
    os._exit(1)

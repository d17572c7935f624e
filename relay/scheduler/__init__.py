"""Scheduler module for response processing.

This module provides the CircuitBreaker shared by all conversations, the
RetryExecutor that wraps each response attempt, and the ProcessingLoop that
drives the cycles.
"""

from relay.scheduler.circuit_breaker import CircuitBreaker
from relay.scheduler.processing_loop import ProcessingLoop
from relay.scheduler.retry_executor import RetryAttemptContext, RetryExecutor, backoff_delay

__all__ = [
    "CircuitBreaker",
    "ProcessingLoop",
    "RetryAttemptContext",
    "RetryExecutor",
    "backoff_delay",
]

"""Observability utilities (structured tracing, error logging, health)."""

from relay.observability.error_log_file import setup_error_log_file
from relay.observability.trace_logging import configure_tracing, trace_event

__all__ = [
    "configure_tracing",
    "setup_error_log_file",
    "trace_event",
]

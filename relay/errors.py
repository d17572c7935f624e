"""Typed error taxonomy for response delivery.

Transport errors are classified once, where the Telegram client raises them,
so the retry executor can match on `ErrorKind` instead of parsing messages.
"""

from __future__ import annotations

from telegram.error import Conflict, NetworkError, RetryAfter, TelegramError

from relay.enums import ErrorKind


class RelayError(Exception):
    """Base exception for relay errors."""


class DeliveryError(RelayError):
    """An error raised while generating or delivering a response."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class FatalConflictError(DeliveryError):
    """Another instance of this bot is polling with the same token."""

    kind = ErrorKind.FATAL_CONFLICT


class RetryableTransportError(DeliveryError):
    """Connection resets, transport faults and rate limiting."""

    kind = ErrorKind.RETRYABLE_TRANSPORT

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to the failure class the executor acts on."""

    if isinstance(exc, DeliveryError):
        return exc.kind
    if isinstance(exc, Conflict):
        return ErrorKind.FATAL_CONFLICT
    # TimedOut is a NetworkError subclass
    if isinstance(exc, (RetryAfter, NetworkError)):
        return ErrorKind.RETRYABLE_TRANSPORT
    return ErrorKind.UNCLASSIFIED


def translate_telegram_error(exc: TelegramError) -> Exception:
    """Wrap a Telegram client error into the typed taxonomy.

    Errors that are neither conflicts nor transient transport failures are
    returned untouched so the caller re-raises the original exception.
    """

    kind = classify_error(exc)
    if kind is ErrorKind.FATAL_CONFLICT:
        return FatalConflictError(f"Another bot instance is running: {exc.message}")
    if kind is ErrorKind.RETRYABLE_TRANSPORT:
        retry_after = None
        if isinstance(exc, RetryAfter):
            raw = exc.retry_after
            retry_after = raw.total_seconds() if hasattr(raw, "total_seconds") else float(raw)
        return RetryableTransportError(exc.message, retry_after=retry_after)
    return exc

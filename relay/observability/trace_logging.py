"""Structured trace/event logging.

We emit a single JSON object per line so scheduler decisions (breaker trips,
retries, restarts) are easy to grep and ship.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

_logger = logging.getLogger("relay.trace")

_TRUNC_SUFFIX = "…(truncated)"

# Telegram bot tokens (file URLs embed them) and bearer-style API keys.
_SENSITIVE_VALUE_RES: list[re.Pattern[str]] = [
    re.compile(r"\d{6,}:[A-Za-z0-9_-]{30,}"),
    re.compile(r"\b(?:sk-|pk-)[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bBearer\s+[A-Za-z0-9._\-]+\b", flags=re.IGNORECASE),
]

_enabled = True
_max_chars = 2000


def configure_tracing(*, enabled: bool = True, max_chars: int = 2000) -> None:
    """Apply trace settings from config."""
    global _enabled, _max_chars
    _enabled = enabled
    _max_chars = max_chars


def _sanitize(value: Any, max_chars: int) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    text = str(value)
    for rx in _SENSITIVE_VALUE_RES:
        text = rx.sub("[REDACTED]", text)
    if max_chars and len(text) > max_chars:
        text = text[:max_chars] + _TRUNC_SUFFIX
    return text


def trace_event(event: str, **fields: Any) -> None:
    """Emit a structured trace event.

    Args:
        event: Short event name, e.g. 'breaker.opened'.
        **fields: Event payload (sanitized and size-bounded).
    """
    if not _enabled:
        return

    record: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    for k, v in fields.items():
        record[k] = _sanitize(v, _max_chars)

    try:
        _logger.info(json.dumps(record, ensure_ascii=False, separators=(",", ":")))
    except (TypeError, ValueError):
        _logger.info('{"event":"%s","error":"failed_to_serialize"}', event)

"""Rotating file of warnings and errors raised anywhere in the relay.

Breaker trips, retry exhaustion and loop restarts are all logged at WARNING or
above, so this file is the post-mortem record of a relay's bad hours.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from relay.config import resolve_repo_path

if TYPE_CHECKING:
    from relay.config import RelayConfig

ERROR_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(filename)s:%(lineno)d %(message)s"

_handler: RotatingFileHandler | None = None


def setup_error_log_file(config: "RelayConfig") -> RotatingFileHandler | None:
    """Attach the error log handler to the root logger.

    Calling it again returns the handler installed by the first call.

    Returns:
        The handler, or None when disabled or the file cannot be opened.
    """
    global _handler

    if not config.error_log_file_enabled:
        return None
    if _handler is not None:
        return _handler

    level_name = config.error_log_level.upper()
    path = resolve_repo_path(config.error_log_file_path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(path),
            maxBytes=config.error_log_max_bytes,
            backupCount=config.error_log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # Logging itself is what failed; stderr is all that is left.
        print(f"relay: error log disabled, cannot open {path}: {e}", file=sys.stderr)
        return None

    handler.setLevel(getattr(logging, level_name, logging.WARNING))
    handler.setFormatter(logging.Formatter(ERROR_LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    _handler = handler

    logging.getLogger(__name__).info("Writing %s+ log records to %s", level_name, path)
    return handler


def get_error_log_handler() -> RotatingFileHandler | None:
    return _handler

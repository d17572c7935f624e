"""Capture of X/Twitter status links shared in chats.

Every status URL seen in a message is appended as one JSON line to a capture
file, for later processing outside the relay.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from relay.models.base import JsonModel

logger = logging.getLogger(__name__)

STATUS_URL_RE = re.compile(
    r"https?://(?:www\.|mobile\.)?(?:x|twitter)\.com/(?P<author>[A-Za-z0-9_]{1,15})/status/(?P<post_id>\d+)",
    flags=re.IGNORECASE,
)


class CapturedPost(JsonModel):
    """A status link captured from a chat message."""

    post_id: str
    author: str
    url: str
    chat_id: int
    user_id: int | None = None
    text: str
    captured_at: datetime


class PostCaptureService:
    """Detects status URLs and records them to a JSON lines file."""

    def __init__(self, capture_path: str | Path) -> None:
        self.capture_path = Path(capture_path)
        self._initialized = False

    def initialize(self) -> None:
        """Create the capture directory."""
        self.capture_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = True
        logger.info("Post capture writing to %s", self.capture_path)

    @staticmethod
    def is_status_url(text: str | None) -> bool:
        return bool(text) and STATUS_URL_RE.search(text) is not None

    def capture_post(self, message: Any) -> CapturedPost | None:
        """Record the first status URL in a Telegram message.

        Args:
            message: Telegram message with `text`, `chat` and `from_user`.

        Returns:
            The captured post, or None when the text holds no status URL.
        """
        text = getattr(message, "text", None) or ""
        match = STATUS_URL_RE.search(text)
        if match is None:
            return None

        if not self._initialized:
            self.initialize()

        from_user = getattr(message, "from_user", None)
        post = CapturedPost(
            post_id=match.group("post_id"),
            author=match.group("author"),
            url=match.group(0),
            chat_id=message.chat.id,
            user_id=getattr(from_user, "id", None),
            text=text,
            captured_at=datetime.now(UTC),
        )

        with self.capture_path.open("a", encoding="utf-8") as f:
            f.write(post.model_dump_json() + "\n")

        return post

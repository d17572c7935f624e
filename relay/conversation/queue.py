"""Bookkeeping of conversations with inbound activity."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ConversationQueue:
    """Tracks every chat that has received a message.

    Chat ids are kept for the lifetime of the process in first-seen order.
    Whether a chat actually needs a reply is decided from its history, not
    from this queue.
    """

    def __init__(self) -> None:
        self._chats: dict[int, int] = {}

    def add_message(self, chat_id: int, message: Any = None) -> None:
        """Record pending activity for a chat.

        Args:
            chat_id: Telegram chat ID.
            message: The inbound message. Only counted, not stored.
        """
        if chat_id not in self._chats:
            logger.debug("Tracking new conversation %s", chat_id)
        self._chats[chat_id] = self._chats.get(chat_id, 0) + 1

    def get_all_chats(self) -> list[int]:
        """Snapshot of all known chat ids, safe to iterate while messages arrive."""
        return list(self._chats)

    def message_count(self, chat_id: int) -> int:
        return self._chats.get(chat_id, 0)

    def __len__(self) -> int:
        return len(self._chats)

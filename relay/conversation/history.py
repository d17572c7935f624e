"""Per-conversation message history."""

from __future__ import annotations

from collections import deque

from relay.enums import MessageRole
from relay.models.conversation import ChatMessage


class ConversationHistoryStore:
    """Bounded, append-only message history per chat.

    Once a chat holds more than `max_length` entries the oldest ones are
    evicted. The role of the newest entry decides whether the chat still owes
    a response.
    """

    def __init__(self, max_length: int = 50) -> None:
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self.max_length = max_length
        self._history: dict[int, deque[ChatMessage]] = {}

    def append(self, chat_id: int, message: ChatMessage) -> None:
        """Append an entry, evicting the oldest if the chat is full."""
        if chat_id not in self._history:
            self._history[chat_id] = deque(maxlen=self.max_length)
        self._history[chat_id].append(message)

    def get(self, chat_id: int) -> list[ChatMessage]:
        """Return the chat's entries, oldest first."""
        return list(self._history.get(chat_id, ()))

    def last_role(self, chat_id: int) -> MessageRole | None:
        entries = self._history.get(chat_id)
        if not entries:
            return None
        return entries[-1].role

    def is_due(self, chat_id: int) -> bool:
        """True when the newest entry exists and was not produced by the bot."""
        role = self.last_role(chat_id)
        return role is not None and role is not MessageRole.ASSISTANT

"""Conversation tracking: pending-chat queue and message history."""

from relay.conversation.history import ConversationHistoryStore
from relay.conversation.queue import ConversationQueue

__all__ = ["ConversationHistoryStore", "ConversationQueue"]

"""Default response generator backed by a Strands agent."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from strands import Agent

from relay.conversation.history import ConversationHistoryStore
from relay.enums import MessageRole
from relay.models.conversation import UNKNOWN_LOCATION, ChatMessage, GeneratedResponse
from relay.services.response_extractor import extract_response_text

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "assistant"


def render_transcript(messages: list[ChatMessage]) -> str:
    """Render history entries as a plain-text chat transcript."""
    lines = []
    for msg in messages:
        if msg.role is MessageRole.ASSISTANT:
            speaker = ASSISTANT_NAME
        else:
            speaker = msg.username or msg.user_id or "user"
            if msg.location and msg.location != UNKNOWN_LOCATION:
                speaker = f"{speaker} ({msg.location})"
        lines.append(f"{speaker}: {msg.text}")
    return "\n".join(lines)


class ResponseService:
    """Generates a reply from a chat's history.

    Generation leaves history untouched; retries after a failed delivery see
    the same transcript.
    """

    def __init__(
        self,
        history: ConversationHistoryStore,
        create_model: Callable[..., Any],
        system_prompt: str,
    ) -> None:
        self.history = history
        self._create_model = create_model
        self.system_prompt = system_prompt

    async def generate_response(self, chat_id: int) -> GeneratedResponse | None:
        messages = self.history.get(chat_id)
        if not messages:
            return None

        prompt = (
            "Conversation so far:\n"
            f"{render_transcript(messages)}\n\n"
            "Write your next message."
        )
        text = await asyncio.to_thread(self._run_agent, prompt)
        if not text:
            logger.warning("Model returned an empty reply for chat %s", chat_id)
            return None

        return GeneratedResponse(text=text)

    def record_response(self, chat_id: int, response: GeneratedResponse) -> None:
        """Append a delivered reply to history, which clears the chat's due state."""
        self.history.append(chat_id, ChatMessage.from_text(MessageRole.ASSISTANT, response.text))

    def _run_agent(self, prompt: str) -> str:
        agent = Agent(
            model=self._create_model(),
            system_prompt=self.system_prompt,
            callback_handler=None,
        )
        return extract_response_text(agent(prompt))

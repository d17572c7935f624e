"""Produces and delivers one reply for a conversation."""

from __future__ import annotations

import logging
from typing import Protocol

from relay.models.conversation import GeneratedResponse

logger = logging.getLogger(__name__)


class ResponseGenerator(Protocol):
    async def generate_response(self, chat_id: int) -> GeneratedResponse | None: ...

    def record_response(self, chat_id: int, response: GeneratedResponse) -> None: ...


class DeliveryChannel(Protocol):
    async def send_typing_indicator(self, chat_id: int) -> None: ...

    async def send_image(self, chat_id: int, url: str) -> None: ...

    async def send_text(self, chat_id: int, text: str) -> None: ...


class ConversationResponder:
    """Typing indicator, then response generation, then delivery.

    The generator is told about a reply only once it has been delivered, so a
    chat whose delivery failed is still due on the next cycle.

    Errors from any step propagate unchanged; the retry executor decides
    whether the whole sequence is attempted again.
    """

    def __init__(self, generator: ResponseGenerator, channel: DeliveryChannel) -> None:
        self.generator = generator
        self.channel = channel

    async def respond(self, chat_id: int) -> GeneratedResponse | None:
        """Generate and deliver a reply.

        Returns:
            The delivered response, or None if there was nothing to send.
        """
        await self.channel.send_typing_indicator(chat_id)

        response = await self.generator.generate_response(chat_id)
        if response is None:
            logger.debug("No response generated for chat %s", chat_id)
            return None

        if response.image_url:
            await self.channel.send_image(chat_id, response.image_url)
        await self.channel.send_text(chat_id, response.text)
        self.generator.record_response(chat_id, response)

        logger.info("Reply delivered to chat %s", chat_id)
        return response

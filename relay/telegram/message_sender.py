"""Telegram message sending utilities.

This is the delivery channel used by the processing loop. Telegram client
errors are translated into the relay's typed error taxonomy here, so the
retry executor never has to inspect error messages.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from telegram.constants import ChatAction
from telegram.error import TelegramError

from relay.errors import translate_telegram_error

logger = logging.getLogger(__name__)

# Telegram's hard limit for sendMessage text.
TELEGRAM_MAX_MESSAGE_LENGTH = 4096


class TelegramBotProtocol(Protocol):
    async def send_message(self, chat_id: int | str, text: str) -> Any: ...

    async def send_photo(self, chat_id: int | str, photo: Any) -> Any: ...

    async def send_chat_action(self, chat_id: int | str, action: str) -> Any: ...


def split_message(text: str, max_len: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks Telegram accepts, preferring line boundaries."""
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        if len(current) + len(line) <= max_len:
            current += line
            continue

        if current:
            chunks.append(current)
            current = ""

        # A single line that is too long is hard-sliced.
        while len(line) > max_len:
            chunks.append(line[:max_len])
            line = line[max_len:]
        current = line

    if current:
        chunks.append(current)
    return chunks


class TelegramMessageSender:
    """Sends typing indicators, images and text replies to Telegram.

    Every method raises `FatalConflictError` or `RetryableTransportError` for
    the matching Telegram failures and re-raises any other error untouched.
    """

    def __init__(self, bot: TelegramBotProtocol):
        """Initialize the message sender.

        Args:
            bot: Telegram bot instance from python-telegram-bot.
        """
        self.bot = bot

    async def send_typing_indicator(self, chat_id: int) -> None:
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except TelegramError as e:
            raise translate_telegram_error(e) from e
        logger.debug("Sent typing action to chat %s", chat_id)

    async def send_image(self, chat_id: int, url: str) -> None:
        """Send an image by URL; Telegram fetches it server-side."""
        try:
            await self.bot.send_photo(chat_id=chat_id, photo=url)
        except TelegramError as e:
            raise translate_telegram_error(e) from e
        logger.info("Image sent to chat %s", chat_id)

    async def send_text(self, chat_id: int, text: str) -> None:
        """Send a text reply, chunked to Telegram's length limit."""
        for chunk in split_message(text):
            try:
                await self.bot.send_message(chat_id=chat_id, text=chunk)
            except TelegramError as e:
                raise translate_telegram_error(e) from e
        logger.debug("Response sent to chat %s", chat_id)

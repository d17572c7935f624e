"""Telegram bot interface.

Inbound messages are recorded here: the chat is marked in the conversation
queue and the message is appended to history (photos as a description).
Replies are produced later by the processing loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Message, PhotoSize, Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from relay.enums import ContentType, MessageRole
from relay.models.conversation import UNKNOWN_LOCATION, ChatMessage, ContentPart

if TYPE_CHECKING:
    from relay.config import RelayConfig
    from relay.conversation.history import ConversationHistoryStore
    from relay.conversation.queue import ConversationQueue
    from relay.services.image_description_service import ImageDescriptionService
    from relay.services.post_capture_service import PostCaptureService

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_CAPTION = "Shared an image:"


class TelegramRelayBot:
    """Telegram bot interface for inbound chat messages."""

    def __init__(
        self,
        config: "RelayConfig",
        queue: "ConversationQueue",
        history: "ConversationHistoryStore",
        image_descriptions: "ImageDescriptionService",
        post_capture: "PostCaptureService | None" = None,
    ) -> None:
        """Initialize the Telegram bot interface.

        Args:
            config: Relay configuration with bot token.
            queue: Conversation queue to mark chats with activity.
            history: History store receiving user entries.
            image_descriptions: Enrichment service for photos.
            post_capture: Optional X/Twitter status URL capture.
        """
        self.config = config
        self.queue = queue
        self.history = history
        self.image_descriptions = image_descriptions
        self.post_capture = post_capture

        self.application = Application.builder().token(config.telegram_bot_token).build()
        self._setup_handlers()

        logger.info("TelegramRelayBot initialized")

    def _setup_handlers(self) -> None:
        self.application.add_handler(
            MessageHandler(filters.TEXT | filters.PHOTO, self._handle_message)
        )
        logger.debug("Telegram handlers registered")

    async def _handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle an inbound text or photo message.

        Errors are logged and never reach python-telegram-bot's dispatcher.
        """
        msg = update.effective_message
        if msg is None:
            return

        try:
            chat_id = msg.chat.id

            if self.post_capture is not None and self.post_capture.is_status_url(msg.text):
                try:
                    captured = self.post_capture.capture_post(msg)
                    if captured:
                        logger.info("Captured X post: %s", captured.post_id)
                except Exception as e:
                    logger.error("Error capturing X post: %s", e)

            if msg.photo or msg.text:
                self.queue.add_message(chat_id, msg)
                await self.log_message(chat_id, msg)
        except Exception as e:
            logger.exception("Error handling message: %s", e)

    async def log_message(self, chat_id: int, msg: Message) -> ChatMessage:
        """Build a user history entry from a Telegram message and append it."""
        user = msg.from_user
        user_id = str(user.id) if user else None
        if user is None:
            username = None
        elif user.username:
            username = user.username
        else:
            username = f"{user.first_name} {user.last_name or ''}".strip()

        location = UNKNOWN_LOCATION
        if msg.location:
            location = f"{msg.location.latitude}, {msg.location.longitude}"

        content: list[ContentPart] = []
        if msg.photo:
            photo = self._select_highest_resolution_photo(msg.photo)
            description = await self.image_descriptions.describe(
                self.application.bot, photo.file_id
            )
            content.append(
                ContentPart(type=ContentType.TEXT, text=msg.caption or DEFAULT_IMAGE_CAPTION)
            )
            content.append(ContentPart(type=ContentType.IMAGE_DESCRIPTION, text=description))
        elif msg.text:
            content.append(ContentPart(type=ContentType.TEXT, text=msg.text))

        entry = ChatMessage(
            role=MessageRole.USER,
            user_id=user_id,
            username=username,
            location=location,
            content=tuple(content),
        )
        self.history.append(chat_id, entry)
        logger.debug("Recorded message from %s in chat %s", username or user_id, chat_id)
        return entry

    @staticmethod
    def _select_highest_resolution_photo(photos: tuple[PhotoSize, ...] | list[PhotoSize]) -> PhotoSize:
        """Telegram lists photo sizes ascending; the last one is the largest."""
        return photos[-1]

    async def start(self) -> None:
        """Initialize the bot and start polling for updates."""
        logger.info("Starting Telegram bot...")
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("Telegram bot started and polling for updates")

    async def stop(self) -> None:
        """Stop polling and shut the bot down."""
        logger.info("Stopping Telegram bot...")
        if self.application.updater and self.application.updater.running:
            await self.application.updater.stop()
        await self.application.stop()
        await self.application.shutdown()
        logger.info("Telegram bot stopped")

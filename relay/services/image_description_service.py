"""Short textual descriptions of inbound photos.

Descriptions are stored in conversation history in place of the image, so
the response model only ever sees text.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from strands import Agent

from relay.services.response_extractor import extract_response_text

if TYPE_CHECKING:
    from telegram import Bot

logger = logging.getLogger(__name__)

DESCRIPTION_PROMPT = "What's in this image? Describe it briefly."
DESCRIPTION_PLACEHOLDER = "Unable to describe image"


class ImageDescriptionService:
    """Describes Telegram photos with a vision-capable model.

    Results are cached per Telegram file id. Failures never propagate: the
    caller gets `DESCRIPTION_PLACEHOLDER` instead, and nothing is cached so
    the next occurrence of the same photo is tried again.
    """

    def __init__(self, create_model: Callable[..., Any]) -> None:
        """Initialize the service.

        Args:
            create_model: Factory returning a Strands model; called with
                `use_vision=True`.
        """
        self._create_model = create_model
        self._cache: dict[str, str] = {}

    async def describe(self, bot: "Bot", file_id: str) -> str:
        """Describe the photo identified by `file_id`."""
        if file_id in self._cache:
            return self._cache[file_id]

        try:
            tg_file = await bot.get_file(file_id)
            image_bytes = bytes(await tg_file.download_as_bytearray())
            description = await asyncio.to_thread(self._run_vision_model, image_bytes)
        except Exception as e:
            logger.error("Error getting image description for %s: %s", file_id, e)
            return DESCRIPTION_PLACEHOLDER

        if not description:
            logger.warning("Vision model returned no description for %s", file_id)
            return DESCRIPTION_PLACEHOLDER

        self._cache[file_id] = description
        return description

    def _run_vision_model(self, image_bytes: bytes) -> str:
        agent = Agent(model=self._create_model(use_vision=True), callback_handler=None)
        result = agent(
            [
                {"text": DESCRIPTION_PROMPT},
                {"image": {"format": "jpeg", "source": {"bytes": image_bytes}}},
            ]
        )
        return extract_response_text(result)

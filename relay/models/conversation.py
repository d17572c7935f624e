"""Conversation history models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import ConfigDict, Field

from relay.enums import ContentType, MessageRole
from relay.models.base import JsonModel

UNKNOWN_LOCATION = "Unknown Location"


class ContentPart(JsonModel):
    """A typed piece of message content.

    Attributes:
        type: `text` for user text or captions, `image_description` for
            text derived from a photo.
        text: The content itself.
    """

    model_config = ConfigDict(frozen=True)

    type: ContentType
    text: str


class ChatMessage(JsonModel):
    """One conversation history entry. Immutable once appended.

    Attributes:
        role: Whether the user side or the response side produced it.
        user_id: Originating user identifier.
        username: Display name.
        location: "lat, lon" when the message carried a location.
        content: Ordered content parts.
        timestamp: Creation time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    user_id: str | None = None
    username: str | None = None
    location: str = UNKNOWN_LOCATION
    content: tuple[ContentPart, ...] = ()
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_text(
        cls,
        role: MessageRole,
        text: str,
        *,
        user_id: str | None = None,
        username: str | None = None,
    ) -> ChatMessage:
        return cls(
            role=role,
            user_id=user_id,
            username=username,
            content=(ContentPart(type=ContentType.TEXT, text=text),),
        )

    @property
    def text(self) -> str:
        """All content parts joined into a single line of text."""
        parts = []
        for part in self.content:
            if part.type is ContentType.IMAGE_DESCRIPTION:
                parts.append(f"[Image: {part.text}]")
            else:
                parts.append(part.text)
        return " ".join(p for p in parts if p)


class GeneratedResponse(JsonModel):
    """A reply produced for a conversation.

    Attributes:
        text: Reply text to deliver.
        image_url: Optional image to send before the text.
    """

    text: str
    image_url: str | None = None

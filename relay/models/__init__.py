"""Pydantic models for the relay."""

from relay.models.base import JsonModel
from relay.models.conversation import ChatMessage, ContentPart, GeneratedResponse

__all__ = ["ChatMessage", "ContentPart", "GeneratedResponse", "JsonModel"]

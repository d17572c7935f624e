"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class ModelProvider(StrEnum):
    """Supported AI model providers."""

    BEDROCK = "bedrock"
    OPENAI = "openai"


class MessageRole(StrEnum):
    """Who produced a conversation history entry."""

    USER = "user"
    ASSISTANT = "assistant"


class ContentType(StrEnum):
    """Content part types stored in a history entry."""

    TEXT = "text"
    IMAGE_DESCRIPTION = "image_description"


class ErrorKind(StrEnum):
    """Failure classes recognized by the retry executor."""

    FATAL_CONFLICT = "fatal_conflict"
    RETRYABLE_TRANSPORT = "retryable_transport"
    UNCLASSIFIED = "unclassified"


class ExecutionOutcome(StrEnum):
    """Non-error results of a single conversation processing call."""

    DELIVERED = "delivered"
    NOTHING_TO_SEND = "nothing_to_send"
    SKIPPED_CIRCUIT_OPEN = "skipped_circuit_open"

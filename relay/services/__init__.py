"""Collaborators around the scheduler: generation, enrichment, capture."""

from relay.services.image_description_service import ImageDescriptionService
from relay.services.post_capture_service import PostCaptureService
from relay.services.responder import ConversationResponder
from relay.services.response_service import ResponseService

__all__ = [
    "ConversationResponder",
    "ImageDescriptionService",
    "PostCaptureService",
    "ResponseService",
]

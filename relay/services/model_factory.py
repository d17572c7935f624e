"""Strands model construction for response generation and image descriptions."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

from strands.models import BedrockModel
from strands.models.openai import OpenAIModel

from relay.enums import ModelProvider

if TYPE_CHECKING:
    from strands.models.model import Model

    from relay.config import RelayConfig


@dataclass(slots=True)
class ModelFactory:
    """Builds a fresh model per call; `create` is handed to services as a callable."""

    config: RelayConfig

    def _model_id(self, default: str, use_vision: bool) -> str:
        if use_vision and self.config.vision_model_id:
            return self.config.vision_model_id
        return default

    def _openai_api_key(self) -> str:
        key = self.config.openai_api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError("OpenAI API key required (RELAY_OPENAI_API_KEY or OPENAI_API_KEY)")
        return key

    def create(self, *, use_vision: bool = False) -> Model:
        provider = self.config.model_provider

        if provider is ModelProvider.BEDROCK:
            return BedrockModel(
                model_id=self._model_id(self.config.bedrock_model_id, use_vision),
                region_name=self.config.aws_region,
            )
        if provider is ModelProvider.OPENAI:
            # OpenAIModel's signature is keyword-only in some type stubs
            return cast(Any, OpenAIModel)(
                client_args={"api_key": self._openai_api_key()},
                model_id=self._model_id(self.config.openai_model_id, use_vision),
            )
        raise ValueError(f"Unsupported model provider: {provider}")

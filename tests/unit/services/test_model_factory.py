"""Unit tests for ModelFactory provider selection."""

from unittest.mock import patch

import pytest

from relay.config import RelayConfig
from relay.enums import ModelProvider
from relay.services.model_factory import ModelFactory


@pytest.fixture(autouse=True)
def no_ambient_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def make_config(**overrides) -> RelayConfig:
    return RelayConfig(telegram_bot_token="t", **overrides)


class TestModelFactory:
    def test_openai_model(self):
        config = make_config(model_provider=ModelProvider.OPENAI, openai_api_key="sk-test")

        with patch("relay.services.model_factory.OpenAIModel") as openai_cls:
            ModelFactory(config).create()

        openai_cls.assert_called_once_with(
            client_args={"api_key": "sk-test"}, model_id="gpt-4o-mini"
        )

    def test_openai_requires_key(self):
        config = make_config(model_provider=ModelProvider.OPENAI)

        with pytest.raises(ValueError, match="OpenAI API key"):
            ModelFactory(config).create()

    def test_openai_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = make_config(model_provider=ModelProvider.OPENAI)

        with patch("relay.services.model_factory.OpenAIModel") as openai_cls:
            ModelFactory(config).create()

        assert openai_cls.call_args.kwargs["client_args"] == {"api_key": "sk-env"}

    def test_bedrock_model(self):
        config = make_config(
            model_provider=ModelProvider.BEDROCK,
            bedrock_model_id="anthropic.test",
            aws_region="eu-west-1",
        )

        with patch("relay.services.model_factory.BedrockModel") as bedrock_cls:
            ModelFactory(config).create()

        bedrock_cls.assert_called_once_with(model_id="anthropic.test", region_name="eu-west-1")

    def test_vision_model_override(self):
        config = make_config(
            model_provider=ModelProvider.OPENAI,
            openai_api_key="sk-test",
            vision_model_id="gpt-4o",
        )

        with patch("relay.services.model_factory.OpenAIModel") as openai_cls:
            ModelFactory(config).create(use_vision=True)
            ModelFactory(config).create()

        model_ids = [c.kwargs["model_id"] for c in openai_cls.call_args_list]
        assert model_ids == ["gpt-4o", "gpt-4o-mini"]

"""Unit tests for RelayConfig loading and validation."""

import json
import os

import pytest
from pydantic import ValidationError

from relay.config import RelayConfig, _flatten_secrets_mapping
from relay.enums import ModelProvider


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run each test away from any .env file and RELAY_* variables."""
    monkeypatch.chdir(tmp_path)

    for key in list(os.environ):
        if key.startswith("RELAY_"):
            monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_scheduler_defaults(self):
        config = RelayConfig(telegram_bot_token="test-token")

        assert config.polling_interval_seconds == pytest.approx(33.333)
        assert config.initial_delay_seconds == 1.0
        assert config.max_consecutive_errors == 5
        assert config.restart_cooldown_seconds == 30.0
        assert config.max_retries == 5
        assert config.retry_base_delay_seconds == 1.0
        assert config.retry_max_delay_seconds == 30.0
        assert config.retry_jitter_seconds == 1.0
        assert config.circuit_breaker_max_failures == 10
        assert config.circuit_breaker_timeout_seconds == 300.0
        assert config.max_history_length == 50
        assert config.model_provider is ModelProvider.OPENAI

    def test_token_is_required(self):
        with pytest.raises(ValidationError):
            RelayConfig()


class TestValidation:
    @pytest.mark.parametrize(
        "field",
        [
            "polling_interval_seconds",
            "restart_cooldown_seconds",
            "retry_base_delay_seconds",
            "retry_max_delay_seconds",
            "circuit_breaker_timeout_seconds",
        ],
    )
    def test_durations_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            RelayConfig(telegram_bot_token="t", **{field: 0})

    def test_initial_delay_may_be_zero(self):
        assert RelayConfig(telegram_bot_token="t", initial_delay_seconds=0).initial_delay_seconds == 0

    def test_negative_jitter_rejected(self):
        with pytest.raises(ValidationError):
            RelayConfig(telegram_bot_token="t", retry_jitter_seconds=-1)

    @pytest.mark.parametrize(
        "field", ["max_consecutive_errors", "circuit_breaker_max_failures", "max_history_length"]
    )
    def test_counts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            RelayConfig(telegram_bot_token="t", **{field: 0})

    def test_zero_retries_allowed(self):
        assert RelayConfig(telegram_bot_token="t", max_retries=0).max_retries == 0


class TestFromJsonFile:
    def test_loads_json_and_secrets(self, tmp_path):
        (tmp_path / "config.json").write_text(
            json.dumps({"max_retries": 3, "polling_interval_seconds": 10})
        )
        (tmp_path / "secrets.yml").write_text(
            "telegram:\n  bot_token: from-secrets\nopenai:\n  api_key: sk-test\n"
        )

        config = RelayConfig.from_json_file(
            config_path=str(tmp_path / "config.json"),
            secrets_path=str(tmp_path / "secrets.yml"),
        )

        assert config.telegram_bot_token == "from-secrets"
        assert config.openai_api_key == "sk-test"
        assert config.max_retries == 3
        assert config.polling_interval_seconds == 10

    def test_env_overrides_file_values(self, tmp_path, monkeypatch):
        (tmp_path / "config.json").write_text(
            json.dumps({"telegram_bot_token": "from-json", "max_retries": 3})
        )
        monkeypatch.setenv("RELAY_MAX_RETRIES", "7")

        config = RelayConfig.from_json_file(
            config_path=str(tmp_path / "config.json"),
            secrets_path=str(tmp_path / "missing.yml"),
        )

        assert config.telegram_bot_token == "from-json"
        assert config.max_retries == 7

    def test_missing_files_fall_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RELAY_TELEGRAM_BOT_TOKEN", "from-env")

        config = RelayConfig.from_json_file(
            config_path=str(tmp_path / "nope.json"),
            secrets_path=str(tmp_path / "nope.yml"),
        )

        assert config.telegram_bot_token == "from-env"


def test_flatten_secrets_mapping():
    flat = _flatten_secrets_mapping(
        {"telegram": {"bot_token": "abc"}, "aws_region": "eu-west-1"}
    )

    assert flat == {"telegram_bot_token": "abc", "aws_region": "eu-west-1"}

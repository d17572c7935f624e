"""Configuration with JSON file, secrets.yml, and env variable support."""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay.enums import ModelProvider


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative paths (capture file, error log) are resolved against the repo root
    so the relay can be launched from any working directory.

    Root detection is heuristic but stable:
    - first directory containing `pyproject.toml`
    - otherwise fall back to the current working directory
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


def resolve_repo_path(raw: str) -> Path:
    """Resolve a possibly relative path against the repository root."""

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = _find_repo_root(start=Path(__file__)) / p
    return p.resolve()


def _flatten_secrets_mapping(secrets: dict) -> dict:
    """Flatten secrets mapping into RelayConfig-compatible keys.

    Converts nested YAML structure to flat config keys:
        telegram.bot_token -> telegram_bot_token
        openai.api_key -> openai_api_key
    """
    flat = {}
    for section, values in secrets.items():
        if isinstance(values, dict):
            for key, value in values.items():
                flat[f"{section}_{key}"] = value
        else:
            flat[section] = values

    return flat


def _load_secrets(secrets_path: Path) -> dict:
    """Load and flatten secrets from YAML file."""
    if not secrets_path.exists():
        return {}

    with open(secrets_path) as f:
        secrets = yaml.safe_load(f) or {}

    if not isinstance(secrets, dict):
        return {}

    return _flatten_secrets_mapping(secrets)


class RelayConfig(BaseSettings):
    """Configuration with JSON file + secrets.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. secrets.yml - sensitive values (bot token, API keys)
    3. Environment variables - runtime overrides

    Prefix: RELAY_ (e.g., RELAY_TELEGRAM_BOT_TOKEN)
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram settings
    telegram_bot_token: str = Field(...)

    # Model settings
    model_provider: ModelProvider = Field(default=ModelProvider.OPENAI)
    bedrock_model_id: str = Field(default="anthropic.claude-3-sonnet-20240229-v1:0")
    openai_model_id: str = Field(default="gpt-4o-mini")
    openai_api_key: str | None = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    vision_model_id: str | None = Field(
        default=None,
        description="Model used for image descriptions. Falls back to the response model.",
    )
    response_system_prompt: str = Field(
        default=(
            "You are a friendly member of a group chat. Reply briefly and naturally "
            "to the most recent messages."
        ),
    )

    # Processing loop
    polling_interval_seconds: float = Field(
        default=33.333, description="Delay between processing cycles"
    )
    initial_delay_seconds: float = Field(
        default=1.0, description="Delay before the first cycle after a start"
    )
    max_consecutive_errors: int = Field(
        default=5, description="Consecutive processing failures before the loop restarts"
    )
    restart_cooldown_seconds: float = Field(
        default=30.0, description="Wait between a self-stop and the automatic restart"
    )

    # Retry / backoff
    max_retries: int = Field(
        default=5, description="Retries per conversation for transient transport errors"
    )
    retry_base_delay_seconds: float = Field(default=1.0)
    retry_max_delay_seconds: float = Field(default=30.0)
    retry_jitter_seconds: float = Field(default=1.0)

    # Circuit breaker
    circuit_breaker_max_failures: int = Field(default=10)
    circuit_breaker_timeout_seconds: float = Field(default=300.0)

    # Conversation history
    max_history_length: int = Field(
        default=50, description="Entries kept per conversation; oldest are evicted"
    )

    # X/Twitter post capture
    post_capture_enabled: bool = Field(default=True)
    post_capture_path: str = Field(default="./captures/x_posts.jsonl")

    # Error log file
    error_log_file_enabled: bool = Field(default=True)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    # Observability / trace logging
    trace_enabled: bool = Field(
        default=True,
        description="Emit structured JSON trace lines for scheduler events.",
    )
    trace_max_chars: int = Field(
        default=2000,
        description="Maximum characters to log for any single trace field.",
    )

    # API settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8742)

    @field_validator(
        "polling_interval_seconds",
        "restart_cooldown_seconds",
        "retry_base_delay_seconds",
        "retry_max_delay_seconds",
        "circuit_breaker_timeout_seconds",
    )
    @classmethod
    def _positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @field_validator("initial_delay_seconds", "retry_jitter_seconds")
    @classmethod
    def _non_negative_duration(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator(
        "max_consecutive_errors",
        "circuit_breaker_max_failures",
        "max_history_length",
    )
    @classmethod
    def _positive_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("max_retries")
    @classmethod
    def _non_negative_count(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "RelayConfig":
        """Load config from JSON + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured RelayConfig instance.
        """
        config_data: dict[str, Any] = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        # Merge secrets (overrides JSON values)
        config_data.update(_load_secrets(Path(secrets_path)))

        # Drop keys whose env var is set so env overrides file values
        env_prefix = "RELAY_"
        for key in [k for k in config_data if f"{env_prefix}{k.upper()}" in os.environ]:
            del config_data[key]

        return cls(**config_data)

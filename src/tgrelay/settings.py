"""Validated relay settings.

Settings come from the TOML config with environment overrides applied
(see :mod:`tgrelay.config`) and are validated with pydantic.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from .config import ConfigError, apply_env_overrides, load_config
from .history import AnnouncePolicy

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant with a flair for friendliness and just a sprinkle "
    "of sass. You are helpful and kind.\n"
    "Remember, your responses are crafted to be concise, maintaining a balance "
    "between warmth, professionalism, and efficiency.\n"
)

EngineName = Literal["openai", "ollama"]


class TelegramSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bot_token: SecretStr
    user_id: int
    debug: bool = False
    poll_timeout_s: int = Field(default=60, ge=1)
    presence_interval_s: float = Field(default=4.0, gt=0)
    max_message_len: int = Field(default=1024, ge=1)


class OpenAISettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: SecretStr | None = None
    model: str = "gpt-4-1106-preview"
    base_url: str = "https://api.openai.com/v1"
    timeout_s: float = 300
    debug: bool = False


class OllamaSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    model: str = "openhermes"
    url: str = "http://localhost:11434"
    timeout_s: float = 300
    debug: bool = False


class TranscriptSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    format: Literal["jsonl", "sqlite"] = "jsonl"
    path: Path | None = None


class RelaySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    engine: EngineName = "openai"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    announce: AnnouncePolicy = "append"
    telegram: TelegramSettings
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    transcript: TranscriptSettings = Field(default_factory=TranscriptSettings)


def validate_settings_data(
    data: dict[str, Any], *, config_path: Path | None
) -> RelaySettings:
    source = str(config_path) if config_path is not None else "environment"
    if "telegram" not in data:
        raise ConfigError(
            f"Missing telegram settings in {source}. Set TELEGRAM_TOKEN and "
            "TELEGRAM_USER_ID or add a [telegram] table."
        )
    try:
        settings = RelaySettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {source}: {exc}") from exc
    if not settings.telegram.bot_token.get_secret_value().strip():
        raise ConfigError(f"Missing bot token in {source}.")
    if not settings.system_prompt.strip():
        settings = settings.model_copy(update={"system_prompt": DEFAULT_SYSTEM_PROMPT})
    return settings


def load_settings(
    path: str | Path | None = None,
    *,
    engine_override: str | None = None,
) -> tuple[RelaySettings, Path | None]:
    config, config_path = load_config(path)
    data = apply_env_overrides(config)
    if engine_override is not None:
        data["engine"] = engine_override
    return validate_settings_data(data, config_path=config_path), config_path

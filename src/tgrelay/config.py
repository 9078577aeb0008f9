from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

# Environment variable names
ENV_BOT_TOKEN = "TELEGRAM_TOKEN"
ENV_USER_ID = "TELEGRAM_USER_ID"
ENV_SYSTEM_PROMPT = "SYSTEM_PROMPT"
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
ENV_ENGINE = "TGRELAY_ENGINE"

LOCAL_CONFIG_NAME = Path(".tgrelay") / "tgrelay.toml"
HOME_CONFIG_PATH = Path.home() / ".tgrelay" / "tgrelay.toml"


class ConfigError(RuntimeError):
    pass


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict[str, Any]:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict[str, Any], Path | None]:
    """Read the TOML config.

    An explicit path must exist. Without one the local and home locations are
    tried in order; when neither exists an empty config is returned so that a
    deployment can be configured from the environment alone.
    """
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate
    return {}, None


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``config`` with environment variables layered on top.

    Environment variables take precedence over the config file.
    """
    merged = dict(config)
    telegram = dict(merged.get("telegram") or {})
    openai = dict(merged.get("openai") or {})

    token = _env(ENV_BOT_TOKEN)
    if token is not None:
        telegram["bot_token"] = token

    user_id = _env(ENV_USER_ID)
    if user_id is not None:
        try:
            telegram["user_id"] = int(user_id)
        except ValueError:
            raise ConfigError(
                f"Invalid {ENV_USER_ID} environment variable; expected an integer."
            ) from None

    prompt = _env(ENV_SYSTEM_PROMPT)
    if prompt is not None:
        merged["system_prompt"] = prompt

    api_key = _env(ENV_OPENAI_API_KEY)
    if api_key is not None:
        openai["api_key"] = api_key

    engine = _env(ENV_ENGINE)
    if engine is not None:
        merged["engine"] = engine

    if telegram:
        merged["telegram"] = telegram
    if openai:
        merged["openai"] = openai
    return merged

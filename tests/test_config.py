from pathlib import Path

import pytest

from tgrelay import config as config_module
from tgrelay.config import ConfigError, apply_env_overrides, load_config
from tgrelay.settings import DEFAULT_SYSTEM_PROMPT, load_settings

ENV_VARS = (
    "TELEGRAM_TOKEN",
    "TELEGRAM_USER_ID",
    "SYSTEM_PROMPT",
    "OPENAI_API_KEY",
    "TGRELAY_ENGINE",
)


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        config_module, "HOME_CONFIG_PATH", tmp_path / "home" / "tgrelay.toml"
    )


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_load_from_explicit_path(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path / "relay.toml", 'engine = "ollama"')

        config, path = load_config(config_file)

        assert config == {"engine": "ollama"}
        assert path == config_file

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Missing config file"):
            load_config(tmp_path / "nonexistent.toml")

    def test_malformed_toml_raises(self, tmp_path: Path) -> None:
        bad_file = _write(tmp_path / "bad.toml", "invalid = [unclosed")

        with pytest.raises(ConfigError, match="Malformed TOML"):
            load_config(bad_file)

    def test_path_is_directory(self, tmp_path: Path) -> None:
        dir_path = tmp_path / "config_dir"
        dir_path.mkdir()

        with pytest.raises(ConfigError, match="Failed to read config file"):
            load_config(dir_path)

    def test_no_config_anywhere_is_empty(self) -> None:
        assert load_config() == ({}, None)

    def test_local_config_wins_over_home(self, tmp_path: Path) -> None:
        local = _write(tmp_path / ".tgrelay" / "tgrelay.toml", 'engine = "ollama"')
        _write(tmp_path / "home" / "tgrelay.toml", 'engine = "openai"')

        config, path = load_config()

        assert path == local
        assert config["engine"] == "ollama"

    def test_home_config_fallback(self, tmp_path: Path) -> None:
        home = _write(tmp_path / "home" / "tgrelay.toml", 'engine = "openai"')

        _, path = load_config()

        assert path == home


class TestEnvOverrides:
    def test_env_wins_over_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_TOKEN", "env-token")
        monkeypatch.setenv("TELEGRAM_USER_ID", " 7 ")
        monkeypatch.setenv("SYSTEM_PROMPT", "be brief")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("TGRELAY_ENGINE", "ollama")
        config = {
            "engine": "openai",
            "telegram": {"bot_token": "file-token", "user_id": 1, "debug": True},
        }

        merged = apply_env_overrides(config)

        assert merged["telegram"] == {
            "bot_token": "env-token",
            "user_id": 7,
            "debug": True,
        }
        assert merged["system_prompt"] == "be brief"
        assert merged["openai"] == {"api_key": "sk-env"}
        assert merged["engine"] == "ollama"
        assert config["telegram"]["bot_token"] == "file-token"

    def test_blank_env_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SYSTEM_PROMPT", "   ")

        assert apply_env_overrides({}) == {}

    def test_invalid_user_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_USER_ID", "ann")

        with pytest.raises(ConfigError, match="TELEGRAM_USER_ID"):
            apply_env_overrides({})


class TestLoadSettings:
    def test_environment_only(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_USER_ID", "42")

        settings, path = load_settings()

        assert path is None
        assert settings.telegram.bot_token.get_secret_value() == "123:abc"
        assert settings.telegram.user_id == 42
        assert settings.engine == "openai"
        assert settings.announce == "append"
        assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert settings.telegram.max_message_len == 1024
        assert settings.telegram.presence_interval_s == 4.0
        assert settings.transcript.enabled is False

    def test_full_file(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path / "relay.toml",
            "\n".join(
                [
                    'engine = "ollama"',
                    'system_prompt = "be terse"',
                    'announce = "merge"',
                    "[telegram]",
                    'bot_token = "123:abc"',
                    "user_id = 5",
                    "max_message_len = 200",
                    "[ollama]",
                    'model = "llama3"',
                    "[transcript]",
                    "enabled = true",
                    'format = "sqlite"',
                    'path = "relay.db"',
                ]
            ),
        )

        settings, path = load_settings(config_file)

        assert path == config_file
        assert settings.engine == "ollama"
        assert settings.system_prompt == "be terse"
        assert settings.announce == "merge"
        assert settings.telegram.max_message_len == 200
        assert settings.ollama.model == "llama3"
        assert settings.transcript.format == "sqlite"
        assert settings.transcript.path == Path("relay.db")

    def test_engine_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_USER_ID", "42")

        settings, _ = load_settings(engine_override="ollama")

        assert settings.engine == "ollama"

    def test_empty_prompt_uses_default(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path / "relay.toml",
            'system_prompt = ""\n[telegram]\nbot_token = "t"\nuser_id = 1\n',
        )

        settings, _ = load_settings(config_file)

        assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_missing_telegram_settings(self) -> None:
        with pytest.raises(ConfigError, match="TELEGRAM_TOKEN"):
            load_settings()

    def test_missing_user_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_TOKEN", "123:abc")

        with pytest.raises(ConfigError, match="Invalid config"):
            load_settings()

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path / "relay.toml",
            '[telegram]\nbot_token = "t"\nuser_id = 1\nchat_id = 3\n',
        )

        with pytest.raises(ConfigError, match="chat_id"):
            load_settings(config_file)

    def test_unknown_engine_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_USER_ID", "42")
        monkeypatch.setenv("TGRELAY_ENGINE", "claude")

        with pytest.raises(ConfigError, match="engine"):
            load_settings()

    def test_blank_token_rejected(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path / "relay.toml", '[telegram]\nbot_token = "  "\nuser_id = 1\n'
        )

        with pytest.raises(ConfigError, match="Missing bot token"):
            load_settings(config_file)

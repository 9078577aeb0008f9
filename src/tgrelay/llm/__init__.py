"""Chat completion backends."""

from __future__ import annotations

from ..config import ConfigError
from ..settings import RelaySettings
from .base import CompletionBackend, CompletionError, chat_messages
from .ollama import OllamaChatBackend
from .openai import OpenAIChatBackend

__all__ = [
    "CompletionBackend",
    "CompletionError",
    "OllamaChatBackend",
    "OpenAIChatBackend",
    "build_backend",
    "chat_messages",
]


def build_backend(settings: RelaySettings) -> CompletionBackend:
    if settings.engine == "openai":
        cfg = settings.openai
        api_key = cfg.api_key.get_secret_value().strip() if cfg.api_key else ""
        if not api_key:
            raise ConfigError(
                "Missing OpenAI API key. Set OPENAI_API_KEY or add "
                "`api_key` to the [openai] table."
            )
        return OpenAIChatBackend(
            api_key=api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            debug=cfg.debug,
        )
    if settings.engine == "ollama":
        cfg_ollama = settings.ollama
        return OllamaChatBackend(
            model=cfg_ollama.model,
            url=cfg_ollama.url,
            timeout_s=cfg_ollama.timeout_s,
            debug=cfg_ollama.debug,
        )
    raise ConfigError(f"Unknown LLM engine {settings.engine!r}.")

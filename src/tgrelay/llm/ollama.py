from __future__ import annotations

from collections.abc import Sequence

import httpx
import msgspec

from ..history import Turn
from ..http_trace import build_http_client
from .base import CompletionError, chat_messages, post_json


class _OllamaMessage(msgspec.Struct, forbid_unknown_fields=False):
    content: str = ""


class _OllamaChat(msgspec.Struct, forbid_unknown_fields=False):
    message: _OllamaMessage | None = None
    error: str | None = None


class OllamaChatBackend:
    """Ollama ``/api/chat`` backend, non-streaming."""

    name = "ollama"

    def __init__(
        self,
        *,
        model: str,
        url: str = "http://localhost:11434",
        timeout_s: float = 300,
        debug: bool = False,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._url = f"{url.rstrip('/')}/api/chat"
        self._client = client or build_http_client(timeout_s=timeout_s, debug=debug)
        self._owns_client = client is None

    @property
    def model(self) -> str:
        return self._model

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(self, turns: Sequence[Turn]) -> str:
        payload = {
            "model": self._model,
            "messages": chat_messages(turns),
            "stream": False,
        }
        data = await post_json(self._client, self._url, payload, backend=self.name)
        try:
            chat = msgspec.convert(data, type=_OllamaChat)
        except msgspec.ValidationError as exc:
            raise CompletionError(f"ollama returned unexpected payload: {exc}") from exc
        if chat.error:
            raise CompletionError(f"ollama error: {chat.error}")
        if chat.message is None or not chat.message.content:
            raise CompletionError("ollama returned an empty completion")
        return chat.message.content

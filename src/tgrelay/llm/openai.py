from __future__ import annotations

from collections.abc import Sequence

import httpx
import msgspec

from ..history import Turn
from ..http_trace import build_http_client
from .base import CompletionError, chat_messages, post_json


class _ChoiceMessage(msgspec.Struct, forbid_unknown_fields=False):
    content: str | None = None


class _Choice(msgspec.Struct, forbid_unknown_fields=False):
    message: _ChoiceMessage


class _ChatCompletion(msgspec.Struct, forbid_unknown_fields=False):
    choices: list[_Choice]


class OpenAIChatBackend:
    """OpenAI-compatible ``/chat/completions`` backend."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 300,
        debug: bool = False,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OpenAI API key is empty")
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._client = client or build_http_client(timeout_s=timeout_s, debug=debug)
        self._owns_client = client is None

    @property
    def model(self) -> str:
        return self._model

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(self, turns: Sequence[Turn]) -> str:
        payload = {"model": self._model, "messages": chat_messages(turns)}
        data = await post_json(
            self._client,
            self._url,
            payload,
            backend=self.name,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        try:
            completion = msgspec.convert(data, type=_ChatCompletion)
        except msgspec.ValidationError as exc:
            raise CompletionError(f"openai returned unexpected payload: {exc}") from exc
        if not completion.choices:
            raise CompletionError("openai returned no choices")
        content = completion.choices[0].message.content
        if not content:
            raise CompletionError("openai returned an empty completion")
        return content

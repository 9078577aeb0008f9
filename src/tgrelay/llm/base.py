from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from ..history import Role, Turn
from ..logging import get_logger

logger = get_logger(__name__)

CHAT_ROLES: dict[Role, str] = {
    "directive": "system",
    "human": "user",
    "assistant": "assistant",
}


class CompletionError(Exception):
    pass


class CompletionBackend(Protocol):
    name: str

    async def generate(self, turns: Sequence[Turn]) -> str: ...

    async def close(self) -> None: ...


def chat_messages(turns: Sequence[Turn]) -> list[dict[str, str]]:
    return [{"role": CHAT_ROLES[turn.role], "content": turn.text} for turn in turns]


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    *,
    backend: str,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    try:
        resp = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        logger.error(
            "llm.network_error",
            backend=backend,
            url=url,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        raise CompletionError(f"{backend} request failed: {exc}") from exc
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "llm.http_error",
            backend=backend,
            status=resp.status_code,
            url=url,
            body=resp.text,
        )
        raise CompletionError(
            f"{backend} returned HTTP {resp.status_code}"
        ) from exc
    try:
        data = resp.json()
    except ValueError as exc:
        logger.error(
            "llm.bad_response",
            backend=backend,
            url=url,
            error=str(exc),
            body=resp.text,
        )
        raise CompletionError(f"{backend} returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise CompletionError(f"{backend} returned unexpected payload")
    return data

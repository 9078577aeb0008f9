from __future__ import annotations

from typing import Any

import httpx

from .logging import get_logger

logger = get_logger(__name__)


async def _log_request(request: httpx.Request) -> None:
    body = request.content.decode("utf-8", errors="replace")
    logger.info(
        "http.request",
        method=request.method,
        url=str(request.url),
        body=body,
    )


async def _log_response(response: httpx.Response) -> None:
    await response.aread()
    logger.info(
        "http.response",
        method=response.request.method,
        url=str(response.request.url),
        status=response.status_code,
        body=response.text,
    )


def trace_event_hooks() -> dict[str, list[Any]]:
    """httpx event hooks that dump every request and response to the log."""
    return {"request": [_log_request], "response": [_log_response]}


def build_http_client(*, timeout_s: float, debug: bool = False) -> httpx.AsyncClient:
    if debug:
        return httpx.AsyncClient(timeout=timeout_s, event_hooks=trace_event_hooks())
    return httpx.AsyncClient(timeout=timeout_s)

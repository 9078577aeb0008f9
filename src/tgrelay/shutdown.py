from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anyio

T = TypeVar("T")


class Stopped(Exception):
    """Raised when the shutdown signal fires before an awaited call finishes."""


class ShutdownSignal:
    """Process-wide shutdown signal, raised once."""

    def __init__(self) -> None:
        self._event = anyio.Event()

    def set(self) -> None:
        self._event.set()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Await ``fn(*args)`` unless the signal fires first.

        Raises :class:`Stopped` when the signal wins. Exceptions raised by
        ``fn`` propagate as-is rather than wrapped in an exception group.
        """
        if self.is_set:
            raise Stopped
        finished = False
        result: Any = None
        error: BaseException | None = None

        async with anyio.create_task_group() as tg:

            async def call() -> None:
                nonlocal finished, result, error
                try:
                    result = await fn(*args)
                except Exception as exc:
                    error = exc
                finished = True
                tg.cancel_scope.cancel()

            async def watch() -> None:
                await self._event.wait()
                tg.cancel_scope.cancel()

            tg.start_soon(call)
            tg.start_soon(watch)

        if error is not None:
            raise error
        if not finished:
            raise Stopped
        return result

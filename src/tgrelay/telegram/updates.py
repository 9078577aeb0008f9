from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import anyio

from ..backoff import ExponentialBackoff
from ..logging import get_logger
from ..shutdown import ShutdownSignal, Stopped
from .client import BotClient, TelegramRetryAfter
from .parsing import parse_update
from .types import TelegramUpdate

logger = get_logger(__name__)

ALLOWED_UPDATES = ["message"]


class UpdateSource:
    """Turns long-polling into an ordered, deduplicated stream of updates.

    The cursor is the next update id to request. It only moves forward and is
    advanced past an update before that update is yielded, so a source
    restarted from :attr:`cursor` never redelivers.
    """

    def __init__(
        self,
        bot: BotClient,
        *,
        shutdown: ShutdownSignal,
        offset: int = 0,
        poll_timeout_s: int = 60,
        backoff: ExponentialBackoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._bot = bot
        self._shutdown = shutdown
        self._cursor = offset
        self._poll_timeout_s = poll_timeout_s
        self._backoff = backoff or ExponentialBackoff()
        self._sleep = sleep
        self._started = False

    @property
    def cursor(self) -> int:
        return self._cursor

    async def _poll(self) -> list[dict] | None:
        try:
            return await self._bot.get_updates(
                offset=self._cursor,
                timeout_s=self._poll_timeout_s,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramRetryAfter as exc:
            logger.info("updates.retry_after", retry_after=exc.retry_after)
            await self._sleep(exc.retry_after)
            return []

    async def _poll_with_backoff(self) -> list[dict]:
        while True:
            updates = await self._shutdown.run(self._poll)
            if updates is not None:
                self._backoff.reset()
                return updates
            delay = self._backoff.next_delay()
            logger.warning("updates.poll_failed", cursor=self._cursor, retry_in=delay)
            await self._shutdown.run(self._sleep, delay)

    async def stream(self) -> AsyncIterator[TelegramUpdate]:
        if self._started:
            raise RuntimeError("update stream can only be consumed once")
        self._started = True
        while not self._shutdown.is_set:
            try:
                batch = await self._poll_with_backoff()
            except Stopped:
                break
            if batch:
                logger.debug("updates.batch", cursor=self._cursor, count=len(batch))
            for raw in batch:
                if self._shutdown.is_set:
                    break
                update_id = raw.get("update_id") if isinstance(raw, dict) else None
                if not isinstance(update_id, int):
                    logger.warning("updates.missing_id", update=raw)
                    continue
                if update_id < self._cursor:
                    logger.debug(
                        "updates.duplicate", update_id=update_id, cursor=self._cursor
                    )
                    continue
                self._cursor = update_id + 1
                update = parse_update(raw)
                if update is None:
                    logger.warning("updates.undecodable", update_id=update_id)
                    continue
                yield update
        logger.info("updates.stopped", cursor=self._cursor)

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Literal

import anyio
from anyio.abc import TaskGroup

from .commands import (
    DIRECTIVE_CHANGED_REPLY,
    FALLBACK_REPLY,
    RESET_REPLY,
    UNKNOWN_COMMAND_REPLY,
    is_command,
    parse_command,
)
from .history import ConversationState, Turn
from .llm import CompletionBackend, CompletionError
from .logging import get_logger
from .shutdown import ShutdownSignal, Stopped
from .telegram.client import BotClient, TelegramRetryAfter, split_text
from .telegram.types import TelegramUpdate
from .transcript import TranscriptError, TranscriptRecorder

logger = get_logger(__name__)

__all__ = ["RelayLoop", "RejectReason"]

TYPING_ACTION = "typing"
ANNOUNCEMENT_TEMPLATE = "Remember, human's name is {name}"

RejectReason = Literal["no_message", "unauthorized", "empty_text", "too_long"]


class PresenceError(Exception):
    pass


class _Completion:
    """Single-shot slot for the outcome of a background completion call."""

    def __init__(self) -> None:
        self._done = anyio.Event()
        self._result = ""
        self._error: Exception | None = None

    def set_result(self, result: str) -> None:
        self._result = result
        self._done.set()

    def set_error(self, error: Exception) -> None:
        self._error = error
        self._done.set()

    async def wait(self) -> str:
        await self._done.wait()
        if self._error is not None:
            raise self._error
        return self._result


class RelayLoop:
    """Relays messages from the one authorized user to the completion backend.

    Updates are handled strictly one at a time. A conversational turn runs
    the completion call as a background task and waits for whichever comes
    first: the completion outcome or the shutdown signal, refreshing the
    typing indicator every ``presence_interval_s`` while it waits.
    """

    def __init__(
        self,
        bot: BotClient,
        backend: CompletionBackend,
        state: ConversationState,
        *,
        admin_id: int,
        shutdown: ShutdownSignal,
        recorder: TranscriptRecorder | None = None,
        presence_interval_s: float = 4.0,
        max_message_len: int = 1024,
        bot_username: str | None = None,
    ) -> None:
        self._bot = bot
        self._backend = backend
        self._state = state
        self._admin_id = admin_id
        self._shutdown = shutdown
        self._recorder = recorder
        self._presence_interval_s = presence_interval_s
        self._max_message_len = max_message_len
        self._bot_username = bot_username
        self._greeted = False
        self._background: TaskGroup | None = None

    @property
    def state(self) -> ConversationState:
        return self._state

    async def run(self, updates: AsyncIterator[TelegramUpdate]) -> None:
        async with anyio.create_task_group() as tg:
            self._background = tg
            try:
                async for update in updates:
                    await self.handle_update(update)
            finally:
                self._background = None
                # pending completions are abandoned, not awaited
                tg.cancel_scope.cancel()
        logger.info("relay.stopped")

    def validate(self, update: TelegramUpdate) -> RejectReason | None:
        if not update.has_message:
            return "no_message"
        if update.sender_id != self._admin_id:
            return "unauthorized"
        if not update.text:
            return "empty_text"
        # characters, not UTF-8 bytes
        if len(update.text) > self._max_message_len:
            return "too_long"
        return None

    async def handle_update(self, update: TelegramUpdate) -> None:
        log = logger.bind(
            update_id=update.update_id,
            user_id=update.sender_id,
            username=update.sender_username,
        )
        reason = self.validate(update)
        if reason is not None:
            log.error(
                "relay.update.rejected",
                reason=reason,
                admin_id=self._admin_id,
                message=update.text[: self._max_message_len],
            )
            return

        try:
            if not self._greeted:
                self._greeted = True
                self._announce(update)
            if is_command(update.text):
                await self._handle_command(update)
            else:
                await self._handle_conversation(update)
        except Exception:
            log.exception("relay.update.failed")

    def _announce(self, update: TelegramUpdate) -> None:
        name = update.sender_first_name
        if not name:
            return
        self._state.append_announcement(ANNOUNCEMENT_TEMPLATE.format(name=name))
        logger.info("relay.first_contact", name=name)

    async def _handle_command(self, update: TelegramUpdate) -> None:
        command = parse_command(update.text, bot_username=self._bot_username)
        logger.info("relay.command", command=command.kind, name=command.name)
        if command.kind == "start":
            return
        if command.kind == "reset":
            self._state.reset()
            await self._reply(update.chat_id, RESET_REPLY)
        elif command.kind == "set-directive":
            self._state.replace_directive(command.args)
            logger.info("relay.directive.changed")
            await self._reply(update.chat_id, DIRECTIVE_CHANGED_REPLY)
        elif command.kind == "show-directive":
            await self._reply(update.chat_id, self._state.directive)
        else:
            await self._reply(update.chat_id, UNKNOWN_COMMAND_REPLY)

    async def _handle_conversation(self, update: TelegramUpdate) -> None:
        chat_id = update.chat_id
        if not await self._send_presence(chat_id):
            logger.error("relay.turn.presence_failed", update_id=update.update_id)
            return

        if self._background is None:
            raise RuntimeError("conversation turns require a running loop")
        self._state.append(update.text)
        outcome = _Completion()
        self._background.start_soon(self._generate, self._state.turns, outcome)

        try:
            answer = await self._await_completion(chat_id, outcome)
        except Stopped:
            logger.info("relay.turn.abandoned", update_id=update.update_id)
            return
        except (CompletionError, PresenceError) as exc:
            logger.error(
                "relay.turn.failed",
                update_id=update.update_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await self._reply(chat_id, FALLBACK_REPLY)
            return

        self._state.complete(answer)
        await self._reply(chat_id, answer)
        await self._record(update, answer)

    async def _await_completion(self, chat_id: int, outcome: _Completion) -> str:
        while True:
            with anyio.move_on_after(self._presence_interval_s):
                return await self._shutdown.run(outcome.wait)
            if not await self._shutdown.run(self._send_presence, chat_id):
                raise PresenceError("failed to refresh typing indicator")

    async def _generate(self, turns: Sequence[Turn], outcome: _Completion) -> None:
        try:
            answer = await self._backend.generate(turns)
        except CompletionError as exc:
            outcome.set_error(exc)
        except Exception as exc:
            logger.exception("relay.completion.crashed", backend=self._backend.name)
            outcome.set_error(CompletionError(str(exc)))
        else:
            outcome.set_result(answer)

    async def _send_presence(self, chat_id: int) -> bool:
        try:
            return await self._bot.send_chat_action(chat_id, TYPING_ACTION)
        except TelegramRetryAfter as exc:
            logger.warning("relay.presence.rate_limited", retry_after=exc.retry_after)
            return False

    async def _reply(self, chat_id: int, text: str) -> bool:
        for chunk in split_text(text):
            try:
                sent = await self._bot.send_message(chat_id, chunk)
            except TelegramRetryAfter as exc:
                logger.error("relay.reply.rate_limited", retry_after=exc.retry_after)
                return False
            if sent is None:
                logger.error("relay.reply.failed", chat_id=chat_id)
                return False
        return True

    async def _record(self, update: TelegramUpdate, answer: str) -> None:
        if self._recorder is None or update.sender_id is None:
            return
        try:
            await self._recorder.record(update.sender_id, update.text, answer)
        except TranscriptError as exc:
            logger.error("relay.transcript.failed", error=str(exc))

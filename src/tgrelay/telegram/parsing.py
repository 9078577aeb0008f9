from __future__ import annotations

from typing import Any

import msgspec

from ..logging import get_logger
from .api_models import Update, decode_update
from .types import TelegramUpdate

logger = get_logger(__name__)


def parse_update(update: Update | dict[str, Any]) -> TelegramUpdate | None:
    """Flatten a Bot API update into a :class:`TelegramUpdate`.

    Updates without a message are kept, with ``message_id == 0``, so that the
    relay can reject them explicitly. ``None`` means the payload could not be
    decoded at all.
    """
    raw: dict[str, Any] | None = None
    if isinstance(update, dict):
        raw = update
        try:
            update = decode_update(update)
        except msgspec.ValidationError as exc:
            logger.debug("telegram.update.undecodable", error=str(exc))
            return None

    msg = update.message
    if msg is None:
        return TelegramUpdate(
            update_id=update.update_id,
            message_id=0,
            chat_id=0,
            sender_id=None,
            sender_first_name=None,
            sender_username=None,
            text="",
            date=0,
            raw=raw,
        )
    sender = msg.from_
    return TelegramUpdate(
        update_id=update.update_id,
        message_id=msg.message_id,
        chat_id=msg.chat.id if msg.chat is not None else 0,
        sender_id=sender.id if sender is not None else None,
        sender_first_name=sender.first_name if sender is not None else None,
        sender_username=sender.username if sender is not None else None,
        text=msg.text or "",
        date=msg.date,
        raw=raw if raw is not None else msgspec.to_builtins(update),
    )

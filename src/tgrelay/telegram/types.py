from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TelegramUpdate:
    update_id: int
    message_id: int
    chat_id: int
    sender_id: int | None
    sender_first_name: str | None
    sender_username: str | None
    text: str
    date: int
    raw: dict[str, Any] | None = None

    @property
    def has_message(self) -> bool:
        return self.message_id != 0

from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "Chat",
    "Message",
    "Update",
    "User",
    "decode_update",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    first_name: str | None = None
    username: str | None = None
    language_code: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    first_name: str | None = None
    username: str | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False, rename={"from_": "from"}):
    message_id: int
    date: int = 0
    chat: Chat | None = None
    from_: User | None = None
    text: str | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None


def decode_update(payload: dict[str, Any]) -> Update:
    return msgspec.convert(payload, type=Update)

"""Telegram Bot API client and update polling."""

from .client import (
    BotClient,
    RetryAfter,
    TelegramClient,
    TelegramRetryAfter,
    split_text,
)
from .parsing import parse_update
from .types import TelegramUpdate
from .updates import UpdateSource

__all__ = [
    "BotClient",
    "RetryAfter",
    "TelegramClient",
    "TelegramRetryAfter",
    "TelegramUpdate",
    "UpdateSource",
    "parse_update",
    "split_text",
]

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

COMMAND_PREFIX = "/"

START_COMMAND = "start"
RESET_COMMAND = "reset"
SYSTEM_COMMAND = "system"

RESET_REPLY = "Chat history reset"
DIRECTIVE_CHANGED_REPLY = "System prompt changed"
UNKNOWN_COMMAND_REPLY = "Unknown command"
FALLBACK_REPLY = "Sorry, assistant is unavailable right now. Try later"

CommandKind = Literal["start", "reset", "set-directive", "show-directive", "unknown"]


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    name: str
    args: str = ""


def is_command(text: str) -> bool:
    return text.startswith(COMMAND_PREFIX)


def parse_command(text: str, *, bot_username: str | None = None) -> Command:
    """Parse a slash command.

    ``/system`` alone shows the directive; ``/system <text>`` replaces it.
    A ``@botname`` suffix is accepted when it names this bot.
    """
    if not is_command(text):
        raise ValueError(f"not a command: {text!r}")
    parts = text[len(COMMAND_PREFIX) :].split(maxsplit=1)
    head = parts[0] if parts else ""
    args = parts[1].strip() if len(parts) > 1 else ""
    name, _, target = head.partition("@")
    name = name.lower()
    if target and (bot_username is None or target.lower() != bot_username.lower()):
        return Command(kind="unknown", name=name, args=args)
    if name == START_COMMAND:
        return Command(kind="start", name=name, args=args)
    if name == RESET_COMMAND:
        return Command(kind="reset", name=name, args=args)
    if name == SYSTEM_COMMAND:
        if args:
            return Command(kind="set-directive", name=name, args=args)
        return Command(kind="show-directive", name=name)
    return Command(kind="unknown", name=name, args=args)

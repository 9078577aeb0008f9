from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Role = Literal["directive", "human", "assistant"]
AnnouncePolicy = Literal["append", "merge"]


@dataclass(frozen=True, slots=True)
class Turn:
    role: Role
    text: str


class ConversationState:
    """Turn history for the single relayed conversation.

    Position 0 always holds the directive. Announcements made before the
    first human turn extend the directive prefix, which :meth:`reset` keeps.
    Owned by one task; there is no locking.
    """

    def __init__(self, directive: str, *, announce_policy: AnnouncePolicy = "append") -> None:
        if announce_policy not in ("append", "merge"):
            raise ValueError(f"unknown announce policy {announce_policy!r}")
        self._turns: list[Turn] = [Turn("directive", directive)]
        self._prefix_len = 1
        self._announce_policy = announce_policy

    @property
    def directive(self) -> str:
        return self._turns[0].text

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def prefix_len(self) -> int:
        return self._prefix_len

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, text: str) -> None:
        self._turns.append(Turn("human", text))

    def complete(self, text: str) -> None:
        if self._turns[-1].role != "human":
            raise ValueError("assistant turn must follow a human turn")
        self._turns.append(Turn("assistant", text))

    def replace_directive(self, text: str) -> None:
        self._turns[0] = Turn("directive", text)

    def append_announcement(self, text: str) -> None:
        if len(self._turns) != self._prefix_len:
            raise ValueError("announcements are only allowed before the first human turn")
        if self._announce_policy == "merge":
            self._turns[0] = Turn("directive", f"{self.directive}\n{text}")
            return
        self._turns.append(Turn("directive", text))
        self._prefix_len += 1

    def reset(self) -> None:
        del self._turns[self._prefix_len :]

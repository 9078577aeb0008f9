import pytest

from tgrelay.history import ConversationState, Turn


def _roles(state: ConversationState) -> list[str]:
    return [turn.role for turn in state.turns]


def test_new_state_holds_only_the_directive() -> None:
    state = ConversationState("be nice")

    assert state.turns == (Turn("directive", "be nice"),)
    assert state.directive == "be nice"
    assert len(state) == 1


def test_append_and_complete_alternate() -> None:
    state = ConversationState("be nice")
    state.append("Hello")
    state.complete("Hi!")
    state.append("How are you?")
    state.complete("Fine.")

    assert _roles(state) == ["directive", "human", "assistant", "human", "assistant"]
    assert state.turns[1] == Turn("human", "Hello")
    assert state.turns[2] == Turn("assistant", "Hi!")


def test_complete_requires_pending_human_turn() -> None:
    state = ConversationState("be nice")
    with pytest.raises(ValueError):
        state.complete("nobody asked")

    state.append("Hello")
    state.complete("Hi!")
    with pytest.raises(ValueError):
        state.complete("again")


def test_reset_restores_directive_only() -> None:
    state = ConversationState("be nice")
    for i in range(5):
        state.append(f"q{i}")
        state.complete(f"a{i}")

    state.reset()

    assert state.turns == (Turn("directive", "be nice"),)
    assert state.directive == "be nice"


def test_reset_keeps_dangling_human_turn_out() -> None:
    state = ConversationState("be nice")
    state.append("unanswered")

    state.reset()

    assert _roles(state) == ["directive"]


@pytest.mark.parametrize("history_len", [0, 1, 7])
@pytest.mark.parametrize("text", ["You are terse.", "", "multi\nline"])
def test_replace_directive_only_touches_position_zero(
    history_len: int, text: str
) -> None:
    state = ConversationState("be nice")
    for i in range(history_len):
        state.append(f"q{i}")
        state.complete(f"a{i}")
    before = state.turns[1:]

    state.replace_directive(text)

    assert state.directive == text
    assert state.turns[1:] == before


def test_reset_after_replace_keeps_new_directive() -> None:
    state = ConversationState("be nice")
    state.append("q")
    state.replace_directive("be terse")

    state.reset()

    assert state.turns == (Turn("directive", "be terse"),)


def test_append_announcement_extends_directive_prefix() -> None:
    state = ConversationState("be nice")
    state.append_announcement("Remember, human's name is Ann")
    state.append("Hello")
    state.complete("Hi Ann!")

    assert _roles(state) == ["directive", "directive", "human", "assistant"]
    assert state.directive == "be nice"
    assert state.prefix_len == 2

    state.reset()

    assert state.turns == (
        Turn("directive", "be nice"),
        Turn("directive", "Remember, human's name is Ann"),
    )


def test_merge_announcement_extends_directive_text() -> None:
    state = ConversationState("be nice", announce_policy="merge")
    state.append_announcement("Remember, human's name is Ann")

    assert len(state) == 1
    assert state.directive == "be nice\nRemember, human's name is Ann"

    state.append("Hello")
    state.reset()
    assert state.directive == "be nice\nRemember, human's name is Ann"


def test_announcement_rejected_after_conversation_started() -> None:
    state = ConversationState("be nice")
    state.append("Hello")

    with pytest.raises(ValueError):
        state.append_announcement("too late")


def test_unknown_announce_policy_rejected() -> None:
    with pytest.raises(ValueError):
        ConversationState("be nice", announce_policy="replace")  # type: ignore[arg-type]


def test_turns_is_a_snapshot() -> None:
    state = ConversationState("be nice")
    snapshot = state.turns
    state.append("Hello")

    assert snapshot == (Turn("directive", "be nice"),)

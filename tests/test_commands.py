import pytest

from tgrelay.commands import Command, is_command, parse_command


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("/start", Command(kind="start", name="start")),
        ("/reset", Command(kind="reset", name="reset")),
        ("/RESET", Command(kind="reset", name="reset")),
        ("/system", Command(kind="show-directive", name="system")),
        ("/system   ", Command(kind="show-directive", name="system")),
        (
            "/system You are terse.",
            Command(kind="set-directive", name="system", args="You are terse."),
        ),
        (
            "/system\nline one\nline two",
            Command(kind="set-directive", name="system", args="line one\nline two"),
        ),
        ("/systemic", Command(kind="unknown", name="systemic")),
        ("/help me", Command(kind="unknown", name="help", args="me")),
        ("/", Command(kind="unknown", name="")),
    ],
)
def test_parse_command(text: str, expected: Command) -> None:
    assert parse_command(text) == expected


def test_bot_mention_for_this_bot_is_accepted() -> None:
    assert parse_command("/reset@Relay_Bot", bot_username="relay_bot").kind == "reset"


def test_bot_mention_for_other_bot_is_unknown() -> None:
    assert parse_command("/reset@other_bot", bot_username="relay_bot").kind == "unknown"
    assert parse_command("/reset@relay_bot").kind == "unknown"


def test_is_command() -> None:
    assert is_command("/start")
    assert not is_command("hello /start")
    assert not is_command("")


def test_parse_command_rejects_plain_text() -> None:
    with pytest.raises(ValueError):
        parse_command("hello")

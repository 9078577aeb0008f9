from collections.abc import Iterator

import pytest
import structlog

from tests.telegram_fakes import _FakeBackend, _FakeBot


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_bot() -> _FakeBot:
    return _FakeBot()


@pytest.fixture
def fake_backend() -> _FakeBackend:
    return _FakeBackend(["Hi!"])

"""Shared fixtures for the recap test suite."""

import itertools
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import Mock

import pytest

from recap.models import ChatInfo, ChatMessage, ChatType, MemberStatus, SentMessage
from recap.storage import SQLiteRecapStore

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)
CHAT_ID = -1001234567890


class FakeClock:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def store() -> Iterator[SQLiteRecapStore]:
    """A fresh SQLite store in a temporary directory."""
    with TemporaryDirectory() as tmpdir:
        yield SQLiteRecapStore(Path(tmpdir) / "recap.db")


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def make_messages(count: int, chat_id: int = CHAT_ID, end: datetime = NOW) -> list[ChatMessage]:
    """``count`` messages spaced ten minutes apart, ending just before ``end``."""
    names = ["Alice", "Bob", "Carol"]
    return [
        ChatMessage(
            message_id=100 + i,
            chat_id=chat_id,
            chat_title="Team Chat",
            user_id=1 + i % 3,
            display_name=names[i % 3],
            text=f"message number {i} about the release",
            sent_at=end - timedelta(minutes=10 * (count - i)),
        )
        for i in range(count)
    ]


def make_platform(
    chat_type: ChatType = ChatType.SUPERGROUP,
    statuses: dict[int, MemberStatus] | None = None,
) -> Mock:
    """Mock chat platform that accepts every send and numbers the messages."""
    platform = Mock()
    counter = itertools.count(5000)
    platform.get_chat.side_effect = lambda chat_id: ChatInfo(id=chat_id, type=chat_type, title="Team Chat")
    platform.send_message.side_effect = lambda chat_id, text, **kwargs: SentMessage(
        chat_id=chat_id, message_id=next(counter), text=text
    )
    statuses = statuses or {}
    platform.get_chat_member.side_effect = lambda chat_id, user_id: statuses.get(user_id, MemberStatus.MEMBER)
    return platform

"""Shared pytest fixtures for messer tests."""

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from messer.handlers import build_default_registry
from messer.lock_manager import LockStore
from messer.messaging_client import HttpMessagingClient
from messer.models import CommandContext, Message, Session, Thread, User
from messer.router import CommandRouter


class FakeSurface:
    """Line surface that replays scripted input and records output."""

    def __init__(self, lines: Optional[List[str]] = None):
        self.lines = list(lines or [])
        self.written: List[str] = []
        self.pending_cleared = 0
        self.screen_cleared = 0

    async def read_line(self) -> Optional[str]:
        if not self.lines:
            return None
        return self.lines.pop(0)

    def write(self, text: str):
        self.written.append(text)

    def clear_pending_input(self):
        self.pending_cleared += 1

    def clear_screen(self):
        self.screen_cleared += 1


THREADS = {
    "42": Thread(id="42", name="Bob Smith"),
    "77": Thread(id="77", name="Book Club", is_group=True, participants=["1", "2", "3"]),
}


@pytest.fixture
def me() -> User:
    return User(id="1", name="Alice")


@pytest.fixture
def mock_client(me) -> MagicMock:
    """
    Mock messaging client for testing without a bridge.

    Knows threads 42 ("Bob Smith") and 77 ("Book Club").
    """
    mock = MagicMock(spec=HttpMessagingClient)
    mock.me = me

    async def get_thread(thread_id):
        return THREADS.get(thread_id)

    async def find_thread(name):
        for thread in THREADS.values():
            if thread.name.lower() == name.lower():
                return thread
        return None

    mock.login = AsyncMock(return_value=me)
    mock.listen = AsyncMock()
    mock.logout = AsyncMock()
    mock.close = AsyncMock()
    mock.get_thread = AsyncMock(side_effect=get_thread)
    mock.find_thread = AsyncMock(side_effect=find_thread)
    mock.recent_threads = AsyncMock(return_value=list(THREADS.values()))
    mock.history = AsyncMock(return_value=[])
    mock.contacts = AsyncMock(return_value=[])
    mock.send_message = AsyncMock(
        return_value=Message(id="m1", thread_id="42", sender_id="1", body="sent")
    )
    mock.delete_messages = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def lock_store() -> LockStore:
    return LockStore()


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def ctx(session, lock_store, mock_client, registry) -> CommandContext:
    return CommandContext(
        session=session,
        lock=lock_store,
        client=mock_client,
        registry=registry,
        logout=AsyncMock(),
    )


@pytest.fixture
def mock_notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def router(ctx, registry, mock_notifier) -> CommandRouter:
    return CommandRouter(ctx, registry, mock_notifier)

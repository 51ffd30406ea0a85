"""
Test Configuration and Fixtures
------------------------------

Shared fixtures for the seatbook tests: a throwaway log directory, an
in-memory session, notification factories and a scripted stream client that
lets tests drive open/message/error callbacks by hand.
"""

import asyncio
import os
import tempfile

# Keep test logs out of the user's home directory; must run before seatbook imports
os.environ.setdefault("SEATBOOK_LOG_DIR", tempfile.mkdtemp(prefix="seatbook-logs-"))

import pytest

from seatbook.auth.session_store import MemorySessionStore
from seatbook.error_handling.exceptions import AuthenticationError
from seatbook.notification.model import Notification, StreamErrorInfo


class ScriptedConnection:
    """Connection handle whose callbacks are fired by the test."""

    def __init__(self, on_message, on_error, on_open):
        self.on_message = on_message
        self.on_error = on_error
        self.on_open = on_open
        self.closed = False

    async def open(self):
        await self.on_open()

    async def push(self, notification: Notification):
        await self.on_message(notification)

    async def fail(self, message: str = "Stream closed by server", terminal: bool = True, status=None):
        await self.on_error(StreamErrorInfo(message, terminal=terminal, status=status))


class ScriptedStreamClient:
    """Stand-in for NotificationStreamClient with the same connect/close contract."""

    def __init__(self, session_store):
        self.session_store = session_store
        self.connections = []
        self.closed = []
        # Number of connections that were still open when the next connect happened
        self.overlapping_connects = 0

    def connect(self, on_message, on_error, on_open):
        if not self.session_store.get_token():
            raise AuthenticationError("unauthenticated")
        if any(not c.closed for c in self.connections):
            self.overlapping_connects += 1
        connection = ScriptedConnection(on_message, on_error, on_open)
        self.connections.append(connection)
        return connection

    async def close(self, handle):
        if handle is None or handle.closed:
            return
        handle.closed = True
        self.closed.append(handle)

    async def aclose(self):
        pass

    @property
    def latest(self) -> ScriptedConnection:
        return self.connections[-1]


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def session_store():
    return MemorySessionStore(token="test-token", user={"email": "student@uni.edu"})


@pytest.fixture
def stream_client(session_store):
    return ScriptedStreamClient(session_store)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def make_notification():
    """Factory for notifications with sensible defaults."""

    def _make(id, read=False, **kwargs):
        payload = {
            "id": id,
            "type": kwargs.pop("type", "SYSTEM"),
            "title": kwargs.pop("title", f"Notification {id}"),
            "message": kwargs.pop("message", "Body"),
            "read": read,
            "timestamp": kwargs.pop("timestamp", "2026-10-01T09:00:00Z"),
        }
        payload.update(kwargs)
        return Notification.from_payload(payload)

    return _make


@pytest.fixture
def settle():
    """Let scheduled tasks (reconnect timers) run."""

    async def _settle(rounds: int = 5):
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle

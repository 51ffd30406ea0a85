"""Session storage for the bearer token and the cached user.

Provides a thin get/clear layer over a JSON file so the session survives
restarts, plus an in-memory variant for embedding and tests.  Both keep
the two fixed keys ``token`` and ``user``.

Usage::

    from seatbook.auth.session_store import FileSessionStore

    store = FileSessionStore(Path("~/.seatbook/session.json").expanduser())
    store.save_session("eyJhbGciOi...", {"email": "student@uni.edu"})
    store.get_token()        # "eyJhbGciOi..."
    store.clear_session()    # removes token and user
"""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from seatbook.notification.logger import setup_logger

_logger = setup_logger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


@runtime_checkable
class SessionStore(Protocol):
    """What the notification client needs from the session."""

    def get_token(self) -> Optional[str]:
        ...

    def get_user(self) -> Optional[Dict[str, Any]]:
        ...

    def clear_session(self) -> None:
        ...


class MemorySessionStore:
    """Session kept in process memory."""

    def __init__(self, token: Optional[str] = None, user: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        if token is not None:
            self._data[TOKEN_KEY] = token
        if user is not None:
            self._data[USER_KEY] = user

    def get_token(self) -> Optional[str]:
        return self._data.get(TOKEN_KEY) or None

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._data.get(USER_KEY)

    def save_session(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        self._data[TOKEN_KEY] = token
        if user is not None:
            self._data[USER_KEY] = user

    def clear_session(self) -> None:
        self._data.pop(TOKEN_KEY, None)
        self._data.pop(USER_KEY, None)


class FileSessionStore:
    """Session persisted to a JSON file.

    The file is re-read on every access so a logout from another process
    is seen by the next ``get_token()`` call.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        """Load the session file, returning {} when missing or unreadable."""
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return data
                _logger.warning("Ignoring session file %s: expected an object", self.path)
        except (OSError, ValueError) as e:
            _logger.warning("Could not read session file %s: %s", self.path, e)
        return {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def get_token(self) -> Optional[str]:
        return self._load().get(TOKEN_KEY) or None

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._load().get(USER_KEY)

    def save_session(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Write a session (persists immediately)."""
        with self._lock:
            data = self._load()
            data[TOKEN_KEY] = token
            if user is not None:
                data[USER_KEY] = user
            self._save(data)

    def clear_session(self) -> None:
        """Remove token and cached user."""
        with self._lock:
            data = self._load()
            if TOKEN_KEY not in data and USER_KEY not in data:
                return
            data.pop(TOKEN_KEY, None)
            data.pop(USER_KEY, None)
            self._save(data)
            _logger.info("Session cleared")

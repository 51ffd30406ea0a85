"""
Notification Store

Owns the notifications visible to the UI and the unread counter.

Two merge policies keep ids unique:

- ``ingest_bulk`` rebuilds the set from a fetch; a repeated id in the same
  fetch overwrites the earlier entry (last write wins).
- ``ingest_streamed`` drops an arrival whose id is already visible;
  otherwise the notification is put first (newest-first).

Read flags change only through ``mark_read`` / ``mark_all_read``; nothing is
ever removed. Listeners and callers only ever get copies.
"""

import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from seatbook.notification.logger import setup_logger
from seatbook.notification.model import Notification, NotificationCategory, NotificationId

_logger = setup_logger(__name__)


class StoreEvent(str, Enum):
    """What changed in the store."""
    LOADED = "loaded"
    ARRIVED = "arrived"
    UNREAD_CHANGED = "unread_changed"


StoreListener = Callable[[StoreEvent, object], None]


class NotificationStore:
    """In-memory, id-keyed notification set."""

    def __init__(self):
        self._lock = threading.RLock()
        self._items: Dict[NotificationId, Notification] = {}
        self._order: List[NotificationId] = []
        self._unread = 0
        self._listeners: List[StoreListener] = []

    # ── Listeners ──

    def add_listener(self, fn: StoreListener) -> None:
        """Register a callback invoked as ``fn(event, payload)``."""
        with self._lock:
            if fn not in self._listeners:
                self._listeners.append(fn)

    def remove_listener(self, fn: StoreListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(fn)
            except ValueError:
                pass

    def _emit(self, event: StoreEvent, payload: object) -> None:
        with self._lock:
            listeners_snapshot = list(self._listeners)
        # Fire listeners outside the lock so they can safely call back in
        for fn in listeners_snapshot:
            try:
                fn(event, payload)
            except Exception:
                _logger.exception("Notification store listener failed on %s", event.value)

    # ── Ingest ──

    def ingest_bulk(self, items: Iterable[Notification]) -> List[Notification]:
        """
        Replace the visible set with the result of a fetch.

        Args:
            items: Notifications in the order the server returned them

        Returns:
            Snapshot of the new visible set
        """
        items_by_id: Dict[NotificationId, Notification] = {}
        for item in items:
            items_by_id[item.id] = item.model_copy(deep=True)

        with self._lock:
            self._items = items_by_id
            self._order = list(items_by_id)
            before = self._unread
            self._unread = sum(1 for n in items_by_id.values() if not n.read)
            snapshot = self._snapshot_locked()
            unread = self._unread

        _logger.debug("Loaded %d notifications (%d unread)", len(snapshot), unread)
        self._emit(StoreEvent.LOADED, snapshot)
        if unread != before:
            self._emit(StoreEvent.UNREAD_CHANGED, unread)
        return snapshot

    def ingest_streamed(self, item: Notification) -> bool:
        """
        Add a notification received from the live stream.

        Returns:
            False when the id is already visible and the arrival was dropped
        """
        with self._lock:
            if item.id in self._items:
                _logger.debug("Dropping duplicate streamed notification %s", item.id)
                return False
            stored = item.model_copy(deep=True)
            self._items[item.id] = stored
            self._order.insert(0, item.id)
            counted = not stored.read
            if counted:
                self._unread += 1
            unread = self._unread
            copy = stored.model_copy(deep=True)

        self._emit(StoreEvent.ARRIVED, copy)
        if counted:
            self._emit(StoreEvent.UNREAD_CHANGED, unread)
        return True

    # ── Read state ──

    def mark_read(self, notification_id: NotificationId) -> bool:
        """
        Flag one notification read.

        Returns:
            True if it was visible and unread
        """
        with self._lock:
            item = self._items.get(notification_id)
            if item is None or item.read:
                return False
            item.read = True
            self._unread = max(0, self._unread - 1)
            unread = self._unread

        self._emit(StoreEvent.UNREAD_CHANGED, unread)
        return True

    def mark_all_read(self) -> int:
        """Flag every notification read. Returns how many changed."""
        with self._lock:
            changed = 0
            for item in self._items.values():
                if not item.read:
                    item.read = True
                    changed += 1
            before, self._unread = self._unread, 0

        if before:
            self._emit(StoreEvent.UNREAD_CHANGED, 0)
        return changed

    def clear(self) -> None:
        """Forget everything, e.g. when the session ends."""
        with self._lock:
            self._items = {}
            self._order = []
            before, self._unread = self._unread, 0
        if before:
            self._emit(StoreEvent.UNREAD_CHANGED, 0)

    # ── Queries ──

    @property
    def unread_count(self) -> int:
        with self._lock:
            return self._unread

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    def __contains__(self, notification_id: NotificationId) -> bool:
        with self._lock:
            return notification_id in self._items

    def get(self, notification_id: NotificationId) -> Optional[Notification]:
        with self._lock:
            item = self._items.get(notification_id)
            return item.model_copy(deep=True) if item is not None else None

    def snapshot(self) -> List[Notification]:
        """Copies of the visible notifications, in display order."""
        with self._lock:
            return self._snapshot_locked()

    def filter(self, category: NotificationCategory) -> List[Notification]:
        return [n for n in self.snapshot() if category.matches(n)]

    def _snapshot_locked(self) -> List[Notification]:
        return [self._items[i].model_copy(deep=True) for i in self._order]

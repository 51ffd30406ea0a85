"""
Notification Model Classes
-------------------------

Data models and enums for the notification system: the notification value
received from the API or the live stream, the connection state shown by the
status indicator, and the events produced by the stream client.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NotificationType(str, Enum):
    """Notification categories emitted by the booking backend."""
    WAITLIST = "WAITLIST"
    NO_SHOW = "NO_SHOW"
    LIBRARY_INFO = "LIBRARY_INFO"
    SYSTEM = "SYSTEM"
    CHECK_IN_WARNING = "CHECK_IN_WARNING"
    ROOM_SHARING = "ROOM_SHARING"


class NotificationCategory(str, Enum):
    """Tabs of the notification panel."""
    ALL = "all"
    LIBRARY = "library"
    BOOKINGS = "bookings"

    def matches(self, notification: "Notification") -> bool:
        if self is NotificationCategory.LIBRARY:
            return notification.type == NotificationType.LIBRARY_INFO.value
        if self is NotificationCategory.BOOKINGS:
            return notification.type in (NotificationType.NO_SHOW.value, NotificationType.WAITLIST.value)
        return True


class ConnectionState(str, Enum):
    """Connection states of the notification stream."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    FAILED = "failed"

    @property
    def indicator(self) -> str:
        """Label for the status indicator: connected, reconnecting or offline."""
        if self is ConnectionState.CONNECTED:
            return "connected"
        if self in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING):
            return "reconnecting"
        return "offline"


NotificationId = Union[int, str]


class Notification(BaseModel):
    """A notification as delivered by ``GET /notifications`` or the event stream."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: NotificationId
    type: str = NotificationType.SYSTEM.value
    title: str = ""
    message: str = ""
    read: bool = False
    timestamp: Optional[datetime] = None
    expiration_time: Optional[datetime] = Field(default=None, alias="expirationTime")
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("timestamp", "expiration_time")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _type_value(cls, value: Any) -> Any:
        if isinstance(value, NotificationType):
            return value.value
        return value

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Notification":
        return cls.model_validate(payload)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when the expiration time has passed. Display only."""
        if self.expiration_time is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiration_time < now

    def route(self) -> Optional[str]:
        """Page the UI opens when the notification is clicked, if any."""
        if self.type == NotificationType.WAITLIST.value:
            seat_id = (self.metadata or {}).get("seatId")
            return f"/seats?seatId={seat_id}" if seat_id is not None else "/seats"
        return None

    def relative_time(self, now: Optional[datetime] = None) -> str:
        if self.timestamp is None:
            return ""
        now = now or datetime.now(timezone.utc)
        seconds = int((now - self.timestamp).total_seconds())
        if seconds < 60:
            return "just now"
        if seconds < 3600:
            return f"{seconds // 60}m ago"
        if seconds < 86400:
            return f"{seconds // 3600}h ago"
        return f"{seconds // 86400}d ago"


# ── Stream events ──


@dataclass(frozen=True)
class StreamErrorInfo:
    """What went wrong on the stream transport.

    ``terminal`` is set when the underlying connection reached a closed state.
    """
    message: str
    terminal: bool = True
    status: Optional[int] = None


@dataclass(frozen=True)
class Opened:
    pass


@dataclass(frozen=True)
class Message:
    notification: Notification


@dataclass(frozen=True)
class Error:
    info: StreamErrorInfo


StreamEvent = Union[Opened, Message, Error]

from seatbook.notification.service.center import NotificationCenter
from seatbook.notification.service.client import NotificationApiClient
from seatbook.notification.service.store import NotificationStore, StoreEvent
from seatbook.notification.service.stream import ConnectionHandle, NotificationStreamClient
from seatbook.notification.service.supervisor import StreamSupervisor

__all__ = [
    "NotificationCenter",
    "NotificationApiClient",
    "NotificationStore",
    "StoreEvent",
    "ConnectionHandle",
    "NotificationStreamClient",
    "StreamSupervisor",
]

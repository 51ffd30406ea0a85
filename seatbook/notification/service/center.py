"""
Notification Center

Facade used by the UI layer. Combines the REST client, the event stream
supervisor and the notification store:

- ``load()`` / ``refresh()`` fetch the list and rebuild the visible set,
- streamed notifications are merged into the same set,
- ``mark_read()`` / ``mark_all_read()`` update local state first and then
  call the API. A failed call is reported but the local change is kept,
- REST failures become user-visible messages instead of exceptions,
- an authentication failure from either path discards in-memory state and
  sends the user to the login route.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from seatbook.auth.session_store import FileSessionStore, SessionStore
from seatbook.error_handling.exceptions import ApiCallError, AuthenticationError, RetryExhaustedError
from seatbook.error_handling.retry_manager import RetryManager
from seatbook.notification.logger import setup_logger
from seatbook.notification.model import (
    ConnectionState, Notification, NotificationCategory, NotificationId,
)
from seatbook.notification.service.client import NotificationApiClient, call_hook
from seatbook.notification.service.config import NotificationClientConfig, get_config
from seatbook.notification.service.store import NotificationStore
from seatbook.notification.service.stream import NotificationStreamClient
from seatbook.notification.service.supervisor import StreamSupervisor

_logger = setup_logger(__name__)

# on_user_message(level, text); level is "success", "info", "warning" or "error"
UserMessageHook = Callable[[str, str], Optional[Awaitable[None]]]


class NotificationCenter:
    """
    Notification state for one signed-in session.

    Hooks (plain or async):
        on_user_message(level, text): toast/alert text for the user
        on_auth_failure(login_route): the session is gone, show the login screen
        on_state_change(state): connection state for the status indicator
    """

    def __init__(self,
                 api: NotificationApiClient,
                 stream: NotificationStreamClient,
                 session_store: SessionStore,
                 store: Optional[NotificationStore] = None,
                 retry_manager: Optional[RetryManager] = None,
                 on_user_message: Optional[UserMessageHook] = None,
                 on_auth_failure: Optional[Callable[[str], object]] = None,
                 on_state_change: Optional[Callable[[ConnectionState], None]] = None,
                 login_route: str = "/login",
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.api = api
        self.stream = stream
        self.session_store = session_store
        self.store = store or NotificationStore()
        self.on_user_message = on_user_message
        self.on_auth_failure = on_auth_failure
        self.login_route = login_route
        self.loading = False
        self._signed_out = False

        self.api.on_unauthorized = self._authentication_failed
        self.supervisor = StreamSupervisor(
            stream,
            session_store,
            retry_manager=retry_manager,
            on_message=self._on_streamed,
            on_auth_failure=self._authentication_failed,
            on_failed=self._on_stream_failed,
            sleep=sleep,
        )
        if on_state_change is not None:
            self.supervisor.add_state_listener(on_state_change)

    @classmethod
    def from_config(cls,
                    config: Optional[NotificationClientConfig] = None,
                    session_store: Optional[SessionStore] = None,
                    **hooks) -> "NotificationCenter":
        """Build a center wired to the configured API, stream and session file."""
        config = config or get_config()
        session_store = session_store or FileSessionStore(config.session.path)
        api = NotificationApiClient(session_store, base_url=config.api.base_url, timeout=config.api.timeout)
        stream = NotificationStreamClient(session_store, url=config.stream_url)
        return cls(
            api,
            stream,
            session_store,
            retry_manager=RetryManager(config.stream.retry_config()),
            login_route=config.session.login_route,
            **hooks,
        )

    # ── Queries ──

    @property
    def unread_count(self) -> int:
        return self.store.unread_count

    @property
    def signed_out(self) -> bool:
        """True once an authentication failure discarded the session state."""
        return self._signed_out

    @property
    def connection_state(self) -> ConnectionState:
        return self.supervisor.state

    @property
    def connection_indicator(self) -> str:
        return self.supervisor.state.indicator

    def notifications(self, category: NotificationCategory = NotificationCategory.ALL) -> List[Notification]:
        return self.store.filter(category)

    # ── Lifecycle ──

    async def start(self):
        """Load the list, then open the live stream."""
        self._signed_out = False
        await self.load()
        if self._signed_out:
            return
        await self.supervisor.start()

    async def stop(self):
        """Close the stream and cancel pending reconnects."""
        await self.supervisor.stop()

    async def close(self):
        await self.stop()
        await self.api.close()
        await self.stream.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ── Operations ──

    async def load(self) -> List[Notification]:
        """Fetch notifications and rebuild the visible set. Never raises API errors."""
        self.loading = True
        try:
            items = await self.api.fetch_notifications()
            return self.store.ingest_bulk(items)
        except AuthenticationError:
            return []
        except ApiCallError as e:
            _logger.error("Failed to fetch notifications: %s", e)
            await self._notify_user("error", "Failed to load notifications")
            return self.store.snapshot()
        finally:
            self.loading = False

    refresh = load

    async def mark_read(self, notification_id: NotificationId) -> bool:
        """
        Mark one notification read.

        The local flag and the unread counter change before the API call.
        If the call fails the change is kept and the failure is reported.

        Returns:
            False when the notification is unknown or already read
        """
        if not self.store.mark_read(notification_id):
            return False

        try:
            await self.api.mark_read(notification_id)
        except AuthenticationError:
            # _authentication_failed already ran through the API hook
            _logger.debug("Signed out while marking notification %s read", notification_id)
        except ApiCallError as e:
            _logger.error("Failed to mark notification %s as read, local state kept: %s", notification_id, e)
            await self._notify_user("error", "Failed to mark notification as read")
        return True

    async def mark_all_read(self) -> int:
        """Mark everything read locally, then with one API call."""
        changed = self.store.mark_all_read()
        try:
            await self.api.mark_all_read()
        except AuthenticationError:
            return changed
        except ApiCallError as e:
            _logger.error("Failed to mark all notifications as read, local state kept: %s", e)
            await self._notify_user("error", "Failed to mark all as read")
            return changed

        await self._notify_user("success", "All notifications marked as read")
        return changed

    # ── Internal hooks ──

    def _on_streamed(self, notification: Notification):
        if self.store.ingest_streamed(notification):
            _logger.info("New notification %s: %s", notification.id, notification.title)

    async def _on_stream_failed(self, error: RetryExhaustedError):
        await self._notify_user("error", "Notifications are offline. Reload to reconnect.")

    async def _authentication_failed(self):
        if self._signed_out:
            return
        self._signed_out = True
        _logger.warning("Authentication lost, discarding notification state")
        self.store.clear()
        if self.supervisor.running:
            await self.supervisor.stop()
        await call_hook(self.on_auth_failure, self.login_route)

    async def _notify_user(self, level: str, text: str):
        try:
            await call_hook(self.on_user_message, level, text)
        except Exception:
            _logger.exception("User message hook failed")

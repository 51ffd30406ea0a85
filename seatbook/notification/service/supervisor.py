"""
Stream Supervisor

Keeps the notification stream alive across transient failures.

State transitions::

    disconnected -> connecting -> connected
    connected|connecting -> reconnecting -> connecting   (retried)
    reconnecting -> failed                                (attempts exhausted)
    any -> error                                          (token gone, go to login)

A successful open resets the attempt counter. When the transport closes,
the session store decides the outcome: no token means an authentication
failure (no retry), a token means a transient failure retried after
``2 ** attempt`` seconds, up to ``max_attempts`` attempts.
"""

import asyncio
import contextlib
from typing import Awaitable, Callable, List, Optional

from seatbook.auth.session_store import SessionStore
from seatbook.error_handling.exceptions import AuthenticationError, RetryExhaustedError
from seatbook.error_handling.retry_manager import RetryManager
from seatbook.notification.logger import setup_logger
from seatbook.notification.model import ConnectionState, Notification, StreamErrorInfo
from seatbook.notification.service.client import call_hook
from seatbook.notification.service.stream import ConnectionHandle, NotificationStreamClient

_logger = setup_logger("notification_stream")

StateListener = Callable[[ConnectionState], None]


class StreamSupervisor:
    """
    Runs one notification stream at a time and reconnects it with capped
    exponential backoff.

    Hooks (plain or async):
        on_message(notification): every streamed notification
        on_auth_failure(): token disappeared; the UI should show the login screen
        on_failed(error): reconnect attempts exhausted; the UI shows "offline"
    """

    def __init__(self,
                 stream: NotificationStreamClient,
                 session_store: SessionStore,
                 retry_manager: Optional[RetryManager] = None,
                 on_message: Optional[Callable[[Notification], object]] = None,
                 on_auth_failure: Optional[Callable[[], object]] = None,
                 on_failed: Optional[Callable[[RetryExhaustedError], object]] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.stream = stream
        self.session_store = session_store
        self.retry_manager = retry_manager or RetryManager()
        self.on_message = on_message
        self.on_auth_failure = on_auth_failure
        self.on_failed = on_failed
        self._sleep = sleep

        self.state = ConnectionState.DISCONNECTED
        self.next_delay: Optional[float] = None
        self.last_error: Optional[Exception] = None
        self._handle: Optional[ConnectionHandle] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stopped = True
        self._state_listeners: List[StateListener] = []

    @property
    def attempts(self) -> int:
        return self.retry_manager.attempt

    @property
    def running(self) -> bool:
        return not self._stopped

    def add_state_listener(self, fn: StateListener) -> None:
        if fn not in self._state_listeners:
            self._state_listeners.append(fn)

    def remove_state_listener(self, fn: StateListener) -> None:
        with contextlib.suppress(ValueError):
            self._state_listeners.remove(fn)

    def _set_state(self, state: ConnectionState):
        if state == self.state:
            return
        _logger.info("Notification stream %s -> %s", self.state.value, state.value)
        self.state = state
        for fn in list(self._state_listeners):
            try:
                fn(state)
            except Exception:
                _logger.exception("Connection state listener failed")

    # ── Lifecycle ──

    async def start(self):
        """Open the stream. A no-op while already running."""
        if not self._stopped:
            return
        self._stopped = False
        self.last_error = None
        self.retry_manager.reset()
        await self._open()

    async def stop(self):
        """Close the stream and cancel any pending reconnect. Nothing fires afterwards."""
        self._stopped = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await self._close_transport()
        self.next_delay = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _open(self):
        self._set_state(ConnectionState.CONNECTING)
        try:
            self._handle = self.stream.connect(
                on_message=self._handle_message,
                on_error=self._handle_error,
                on_open=self._handle_open,
            )
        except AuthenticationError as e:
            await self._authentication_failed(e)

    async def _close_transport(self):
        handle, self._handle = self._handle, None
        if handle is not None:
            await self.stream.close(handle)

    # ── Transport callbacks ──

    async def _handle_open(self):
        if self._stopped:
            return
        self.retry_manager.reset()
        self.next_delay = None
        self._set_state(ConnectionState.CONNECTED)

    async def _handle_message(self, notification: Notification):
        if self._stopped:
            return
        await call_hook(self.on_message, notification)

    async def _handle_error(self, info: StreamErrorInfo):
        if self._stopped:
            return
        if not info.terminal:
            _logger.warning("Transient stream error, connection still open: %s", info.message)
            return
        await self.handle_transport_closed(info)

    async def handle_transport_closed(self, info: StreamErrorInfo):
        """Decide between login redirect, reconnect and giving up."""
        if not self.session_store.get_token():
            await self._authentication_failed(AuthenticationError("Session token no longer present"))
            return

        delay = self.retry_manager.next_delay({"reason": info.message, "status": info.status})
        if delay is None:
            error = RetryExhaustedError(self.retry_manager.config.max_attempts)
            self.last_error = error
            self.next_delay = None
            self._stopped = True
            await self._close_transport()
            self._set_state(ConnectionState.FAILED)
            _logger.error("%s", error)
            await call_hook(self.on_failed, error)
            return

        self.next_delay = delay
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float):
        await self._sleep(delay)
        if self._stopped:
            return
        # One stream at a time: the old transport is gone before the new one opens
        await self._close_transport()
        self._reconnect_task = None
        await self._open()

    async def _authentication_failed(self, error: AuthenticationError):
        self.last_error = error
        self.next_delay = None
        self._stopped = True
        await self._close_transport()
        self._set_state(ConnectionState.ERROR)
        _logger.warning("Notification stream stopped: %s", error.message)
        await call_hook(self.on_auth_failure)

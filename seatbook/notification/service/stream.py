"""
Notification Stream Client

Opens one authenticated server-sent-events connection to
``GET /notifications/stream?token=<bearer>`` and hands every pushed
notification to the caller.

The token travels in the query string because the stream transport cannot
carry an Authorization header. The client never retries on its own: when
the connection reaches a closed state it reports a terminal error and the
caller (see ``supervisor.StreamSupervisor``) decides what happens next.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

import aiohttp
from pydantic import ValidationError

from seatbook.auth.session_store import SessionStore
from seatbook.error_handling.exceptions import AuthenticationError
from seatbook.notification.logger import setup_logger
from seatbook.notification.model import (
    Error, Message, Notification, Opened, StreamErrorInfo, StreamEvent,
)
from seatbook.notification.service.client import call_hook
from seatbook.notification.service.config import get_config

_logger = setup_logger(__name__)

EVENT_STREAM = "text/event-stream"


# ── Event stream framing ──


@dataclass
class SseEvent:
    """One dispatched server-sent event."""
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


class SseDecoder:
    """Incremental text/event-stream decoder.

    Feed it one line at a time (without the line terminator). A blank line
    dispatches the event collected so far; ``:`` lines are comments.
    """

    def __init__(self):
        self._data: List[str] = []
        self._event = ""
        self._id: Optional[str] = None
        self._retry: Optional[int] = None
        self.last_event_id: Optional[str] = None

    def feed(self, line: str) -> Optional[SseEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[SseEvent]:
        if self._id is not None:
            self.last_event_id = self._id
        if not self._data:
            self._event = ""
            self._retry = None
            return None

        event = SseEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self.last_event_id,
            retry=self._retry,
        )
        self._data = []
        self._event = ""
        self._retry = None
        return event


async def iter_sse_events(content: aiohttp.StreamReader,
                          decoder: Optional[SseDecoder] = None) -> AsyncIterator[SseEvent]:
    """Yield events from an aiohttp response body until the server closes it."""
    decoder = decoder or SseDecoder()
    async for raw_line in content:
        line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
        event = decoder.feed(line)
        if event is not None:
            yield event
    # A final event without a trailing blank line is discarded, as browsers do.


# ── Connection ──


class ConnectionHandle:
    """Opaque handle for one stream connection, passed back to ``close()``."""

    def __init__(self, url: str):
        self.url = url
        self.closed = False
        self._task: Optional[asyncio.Task] = None
        self._response: Optional[aiohttp.ClientResponse] = None

    @property
    def done(self) -> bool:
        """True once the transport has finished, for whatever reason."""
        return self._task is not None and self._task.done()

    def __repr__(self) -> str:
        state = "closed" if self.closed else ("done" if self.done else "open")
        return f"<ConnectionHandle {self.url} {state}>"


class NotificationStreamClient:
    """
    Client for the notification event stream.

    Callbacks may be plain functions or coroutine functions:

    - ``on_open()`` once the server accepted the connection,
    - ``on_message(notification)`` once per pushed event, in arrival order,
    - ``on_error(info)`` when the transport fails; ``info.terminal`` is set
      when the connection is closed for good.
    """

    def __init__(self,
                 session_store: SessionStore,
                 url: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 connect_timeout: float = 30.0):
        """
        Args:
            session_store: Source of the bearer token (read only)
            url: Stream URL. Defaults to the configured API base URL + stream path.
            session: Shared aiohttp session; created lazily when omitted
            connect_timeout: Seconds allowed for establishing the connection
        """
        self.session_store = session_store
        self.url = url or get_config().stream_url
        self.connect_timeout = connect_timeout
        self.last_event_id: Optional[str] = None
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # No total timeout: the stream is meant to stay open indefinitely
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)
            )
            self._owns_session = True
        return self._session

    async def aclose(self):
        """Release the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def connect(self,
                on_message: Callable,
                on_error: Callable,
                on_open: Callable) -> ConnectionHandle:
        """
        Open the stream. Must be called from a running event loop.

        Raises:
            AuthenticationError: No token in the session store; nothing is sent.

        Returns:
            Handle to pass to ``close()``
        """
        token = self.session_store.get_token()
        if not token:
            raise AuthenticationError("unauthenticated")

        handle = ConnectionHandle(self.url)
        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, token, on_message, on_error, on_open)
        )
        _logger.debug("Opening notification stream %s", self.url)
        return handle

    async def close(self, handle: Optional[ConnectionHandle]):
        """Terminate the connection. Idempotent; no callbacks fire afterwards."""
        if handle is None or handle.closed:
            return
        handle.closed = True

        task = handle._task
        # Closing from inside a callback: the reader is already on its way out
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Notification stream %s closed", handle.url)

    async def _run(self, handle: ConnectionHandle, token: str,
                   on_message: Callable, on_error: Callable, on_open: Callable):
        headers = {"Accept": EVENT_STREAM, "Cache-Control": "no-cache"}
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        try:
            session = await self._get_session()
            async with session.get(self.url, params={"token": token}, headers=headers) as response:
                handle._response = response
                if response.status != 200:
                    await self._report(handle, on_error, StreamErrorInfo(
                        f"Stream rejected with HTTP {response.status}", terminal=True, status=response.status))
                    return
                if response.content_type != EVENT_STREAM:
                    await self._report(handle, on_error, StreamErrorInfo(
                        f"Unexpected content type {response.content_type}", terminal=True, status=response.status))
                    return

                if handle.closed:
                    return
                await call_hook(on_open)

                decoder = SseDecoder()
                decoder.last_event_id = self.last_event_id
                async for event in iter_sse_events(response.content, decoder):
                    if handle.closed:
                        return
                    self.last_event_id = decoder.last_event_id
                    notification = self._parse(event)
                    if notification is None:
                        continue
                    try:
                        await call_hook(on_message, notification)
                    except Exception:
                        _logger.exception("on_message handler failed for notification %s", notification.id)

            await self._report(handle, on_error, StreamErrorInfo("Stream closed by server", terminal=True))

        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            await self._report(handle, on_error, StreamErrorInfo(
                f"Stream connection failed: {e!r}", terminal=True))
        finally:
            handle._response = None

    @staticmethod
    def _parse(event: SseEvent) -> Optional[Notification]:
        if not event.data.strip():
            return None
        try:
            return Notification.model_validate_json(event.data)
        except ValidationError as e:
            _logger.warning("Dropping unparseable stream event %r: %s", event.data[:200], e)
            return None

    @staticmethod
    async def _report(handle: ConnectionHandle, on_error: Callable, info: StreamErrorInfo):
        if handle.closed:
            return
        _logger.warning("Notification stream error: %s", info.message)
        await call_hook(on_error, info)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """
        Iterate over one connection as ``Opened`` / ``Message`` / ``Error`` events.

        Iteration ends after a terminal ``Error``. Leaving the loop early closes
        the connection.
        """
        queue: asyncio.Queue = asyncio.Queue()
        handle = self.connect(
            on_message=lambda n: queue.put_nowait(Message(n)),
            on_error=lambda info: queue.put_nowait(Error(info)),
            on_open=lambda: queue.put_nowait(Opened()),
        )
        try:
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, Error) and event.info.terminal:
                    break
        finally:
            await self.close(handle)

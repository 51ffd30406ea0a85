"""
Notification API Client

Client library for the notification endpoints of the booking API.
Provides a simple interface for fetching notifications and marking them read.

Every request carries ``Authorization: Bearer <token>`` when the session store
holds a token. An unauthorized response clears the session and triggers the
``on_unauthorized`` hook (the UI redirects to the login route).
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import aiohttp
from pydantic import ValidationError

from seatbook.auth.session_store import SessionStore
from seatbook.error_handling.exceptions import ApiCallError, AuthenticationError
from seatbook.notification.logger import setup_logger
from seatbook.notification.model import Notification, NotificationId
from seatbook.notification.service.config import get_config

_logger = setup_logger(__name__)

UnauthorizedHook = Callable[[], Union[None, Awaitable[None]]]


async def call_hook(hook: Optional[Callable], *args) -> None:
    """Invoke a plain or async callback."""
    if hook is None:
        return
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


class NotificationApiClient:
    """
    Client for the notification REST endpoints.

    - ``GET  /notifications``
    - ``POST /notifications/{id}/read``
    - ``POST /notifications/mark-all-read``
    """

    def __init__(self,
                 session_store: SessionStore,
                 base_url: Optional[str] = None,
                 timeout: Optional[int] = None,
                 on_unauthorized: Optional[UnauthorizedHook] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the notification API client.

        Args:
            session_store: Source of the bearer token
            base_url: Base URL of the API. Defaults to SEATBOOK_API_BASE_URL.
            timeout: Request timeout in seconds
            on_unauthorized: Called after a 401 cleared the session
            session: Shared aiohttp session; created lazily when omitted
        """
        config = get_config().api
        self.base_url = (base_url or config.base_url).rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.timeout)
        self.session_store = session_store
        self.on_unauthorized = on_unauthorized
        self._session = session
        self._owns_session = session is None

        _logger.info("NotificationApiClient initialized for %s", self.base_url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session_store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make an authenticated HTTP request.

        Args:
            method: HTTP method
            endpoint: API endpoint, relative to the base URL
            **kwargs: Additional request parameters

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            AuthenticationError: On 401; the session has been cleared
            ApiCallError: On any other failure
        """
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"

        try:
            async with session.request(method, url, headers=self._headers(), **kwargs) as response:
                if response.status == 401:
                    await self._handle_unauthorized()
                    raise AuthenticationError("Session expired or invalid", status_code=401)
                if response.status >= 400:
                    message = await self._error_message(response)
                    _logger.error("API Error: %s %s -> %d %s", method, endpoint, response.status, message)
                    raise ApiCallError(message, endpoint=endpoint, status_code=response.status)

                body = await response.text()
                if not body.strip():
                    return None
                if response.content_type == "application/json":
                    return await response.json()
                return body

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _logger.error("API Error: %s %s failed: %s", method, endpoint, e)
            raise ApiCallError(f"Request failed: {e}", endpoint=endpoint) from e

    async def _handle_unauthorized(self):
        """Clear the session and tell the UI to go to the login route."""
        _logger.warning("Unauthorized response, clearing session")
        self.session_store.clear_session()
        await call_hook(self.on_unauthorized)

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        text = await response.text()
        if response.content_type == "application/json":
            try:
                data = await response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("message"):
                return str(data["message"])
        return text or f"HTTP {response.status}"

    async def fetch_notifications(self) -> List[Notification]:
        """
        Fetch the current user's notifications.

        Returns:
            Notifications in the order the server returned them. Items that do
            not parse are skipped.
        """
        data = await self._make_request("GET", "/notifications")
        if data is None:
            return []
        if not isinstance(data, list):
            raise ApiCallError("Unexpected notifications payload", endpoint="/notifications")

        notifications = []
        for item in data:
            try:
                notifications.append(Notification.from_payload(item))
            except (ValidationError, TypeError) as e:
                _logger.warning("Skipping malformed notification %r: %s", item, e)
        _logger.debug("Fetched %d notifications", len(notifications))
        return notifications

    async def mark_read(self, notification_id: NotificationId) -> Any:
        """Mark a single notification read server-side."""
        return await self._make_request("POST", f"/notifications/{notification_id}/read")

    async def mark_all_read(self) -> Any:
        """Mark every notification read server-side."""
        return await self._make_request("POST", "/notifications/mark-all-read")

"""
Custom Exception Classes
=======================

Structured exceptions for the seatbook client. Each carries an error code,
a context dict, a severity and a recoverable flag, so callers can log or
serialize them uniformly.

Failure modes of the notification layer:

- AuthenticationError: no token, or the server rejected it. Never retried.
- RetryExhaustedError: the stream reconnect attempts are used up.
- ApiCallError: a REST call failed; shown to the user, not raised into rendering.

Transient stream transport failures are not exceptions; they reach the
supervisor as ``StreamErrorInfo`` values.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ErrorCodes:
    """Error code constants."""

    AUTH_ERROR = "AUTH_ERROR"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    API_CALL_ERROR = "API_CALL_ERROR"


class SeatbookException(Exception):
    """
    Base class for seatbook client errors.

    Args:
        message: Text shown in logs
        error_code: One of ``ErrorCodes``
        context: Extra key/value details (endpoint, status code, component...)
        severity: DEBUG, INFO, WARNING, ERROR or CRITICAL
        recoverable: False when retrying cannot help
        retry_after: Suggested wait in seconds, if any
    """

    def __init__(self,
                 message: str,
                 error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 severity: str = "ERROR",
                 recoverable: bool = True,
                 retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = dict(context or {})
        self.severity = severity.upper()
        self.recoverable = recoverable
        self.retry_after = retry_after
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': type(self).__name__,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context,
            'severity': self.severity,
            'recoverable': self.recoverable,
            'retry_after': self.retry_after,
            'timestamp': self.timestamp.isoformat(),
        }

    def should_retry(self) -> bool:
        """True when the error is recoverable and suggests a wait."""
        return self.recoverable and self.retry_after is not None

    def __str__(self) -> str:
        text = f"{type(self).__name__}: {self.message}"
        if self.error_code:
            text += f" | Code: {self.error_code}"
        details = ", ".join(f"{k}={v}" for k, v in self.context.items() if v is not None)
        if details:
            text += f" | Context: {details}"
        return text


class AuthenticationError(SeatbookException):
    """Raised when no usable bearer token exists or the server rejects it."""

    def __init__(self, message: str = "unauthenticated", status_code: Optional[int] = None, **kwargs):
        context = kwargs.pop('context', {})
        context.update(component='auth', status_code=status_code)
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code=ErrorCodes.AUTH_ERROR, context=context, **kwargs)
        self.status_code = status_code


class RetryExhaustedError(SeatbookException):
    """Raised when the reconnect attempts are used up."""

    def __init__(self, attempts: int, **kwargs):
        context = kwargs.pop('context', {})
        context.update(component='notification_stream', attempts=attempts)
        kwargs.setdefault('recoverable', False)
        kwargs.setdefault('severity', "CRITICAL")
        super().__init__(
            f"Notification stream offline after {attempts} reconnect attempts",
            error_code=ErrorCodes.RETRY_EXHAUSTED,
            context=context,
            **kwargs,
        )
        self.attempts = attempts


class ApiCallError(SeatbookException):
    """Raised when a REST call to the notification API fails."""

    def __init__(self,
                 message: str,
                 endpoint: Optional[str] = None,
                 status_code: Optional[int] = None,
                 **kwargs):
        context = kwargs.pop('context', {})
        context.update(component='notification_api', endpoint=endpoint, status_code=status_code)
        super().__init__(message, error_code=ErrorCodes.API_CALL_ERROR, context=context, **kwargs)
        self.endpoint = endpoint
        self.status_code = status_code

"""
Notification Client Configuration

Pydantic-based configuration management for the notification client.
Handles environment variables for the API endpoint, the event stream
reconnect policy and the local session file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from seatbook.model.error_handling import RetryConfig, RetryStrategy


class ApiConfig(BaseSettings):
    """REST API configuration."""

    base_url: str = Field(
        default="http://localhost:8080/api",
        description="Base URL of the booking API"
    )
    timeout: int = Field(
        default=30,
        description="Request timeout in seconds"
    )
    model_config = SettingsConfigDict(env_prefix="SEATBOOK_API_")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StreamConfig(BaseSettings):
    """Event stream and reconnect configuration."""

    path: str = Field(
        default="/notifications/stream",
        description="Stream endpoint, relative to the API base URL"
    )
    max_attempts: int = Field(
        default=5,
        description="Reconnect attempts before giving up"
    )
    base_delay: float = Field(
        default=2.0,
        description="Delay before the first reconnect attempt (seconds)"
    )
    backoff_factor: float = Field(
        default=2.0,
        description="Multiplier applied per attempt"
    )
    max_delay: float = Field(
        default=60.0,
        description="Upper bound for a single reconnect delay (seconds)"
    )
    jitter: bool = Field(
        default=False,
        description="Randomise delays by +/-10%"
    )
    model_config = SettingsConfigDict(env_prefix="SEATBOOK_STREAM_")

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            strategy=RetryStrategy.EXPONENTIAL,
            jitter=self.jitter,
            backoff_factor=self.backoff_factor,
        )


class SessionConfig(BaseSettings):
    """Local session storage configuration."""

    path: Path = Field(
        default_factory=lambda: Path.home() / ".seatbook" / "session.json",
        description="JSON file holding the token and cached user"
    )
    login_route: str = Field(
        default="/login",
        description="Route the user is sent to when the session is no longer valid"
    )
    model_config = SettingsConfigDict(env_prefix="SEATBOOK_SESSION_")


class NotificationClientConfig(BaseSettings):
    """Main notification client configuration."""

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    model_config = SettingsConfigDict(env_prefix="SEATBOOK_")

    @property
    def stream_url(self) -> str:
        return f"{self.api.base_url}{self.stream.path}"


@lru_cache(maxsize=1)
def get_config() -> NotificationClientConfig:
    """Return the process-wide configuration, read from the environment once."""
    return NotificationClientConfig()

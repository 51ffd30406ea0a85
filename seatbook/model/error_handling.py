"""
Reconnect policy models.

Includes:
- RetryStrategy enum (how the delay grows per attempt)
- RetryConfig dataclass consumed by ``seatbook.error_handling.retry_manager``
"""
from enum import Enum
from dataclasses import dataclass


class RetryStrategy(Enum):
    """How the delay grows from one reconnect attempt to the next."""
    FIXED = "fixed"
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


@dataclass
class RetryConfig:
    """Reconnect policy for the notification stream.

    The defaults give the schedule 2, 4, 8, 16, 32 seconds for attempts 1..5
    (``base_delay * backoff_factor ** (attempt - 1)``), then give up.
    """

    max_attempts: int = 5
    base_delay: float = 2.0     # delay before attempt 1, seconds
    max_delay: float = 60.0     # cap for any single delay, seconds
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    backoff_factor: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1  # +/- fraction of the delay

    log_retries: bool = True
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(f"max_delay ({self.max_delay}) is below base_delay ({self.base_delay})")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

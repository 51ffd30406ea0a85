"""
Retry Manager
============

Tracks reconnect attempts for the notification stream and computes the
delay before each one:
- Exponential backoff (optionally fixed or linear), capped by ``max_delay``
- Optional jitter
- Attempt counter that is reset by a successful connection
- Statistics for diagnostics
"""

import logging
import random
from typing import Any, Dict, Optional

from seatbook.model.error_handling import RetryConfig, RetryStrategy
from seatbook.notification.logger import setup_logger

_logger = setup_logger(__name__)


class RetryManager:
    """
    Counts consecutive failures and hands out the delay for the next attempt.

    ``next_delay()`` is called once per failure. It returns the number of
    seconds to wait before the next attempt, or ``None`` once
    ``config.max_attempts`` attempts have been used up. ``reset()`` is called
    after a success so the following failure starts over at attempt 1.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config if config is not None else RetryConfig()
        self.attempt = 0
        self.stats = {
            'retry_attempts': 0,
            'successful_recoveries': 0,
            'exhausted': 0,
            'total_retry_time': 0.0,
        }

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.config.max_attempts

    def next_delay(self, context: Optional[Dict[str, Any]] = None) -> Optional[float]:
        """
        Register a failure and return the delay before the next attempt.

        Args:
            context: Details of the failure, logged with the attempt

        Returns:
            Delay in seconds, or None when no attempts are left
        """
        self.attempt += 1

        if self.exhausted:
            self.stats['exhausted'] += 1
            if self.config.log_retries:
                _logger.error("Giving up after %d attempts. Context: %s",
                              self.config.max_attempts, context or {})
            return None

        delay = self.calculate_delay(self.attempt)
        self.stats['retry_attempts'] += 1
        self.stats['total_retry_time'] += delay
        if self.config.log_retries:
            level = getattr(logging, self.config.log_level.upper(), logging.WARNING)
            _logger.log(level, "Attempt %d/%d in %.2fs. Context: %s",
                        self.attempt, self.config.max_attempts, delay, context or {})
        return delay

    def reset(self):
        """Forget previous failures after a successful attempt."""
        if self.attempt:
            self.stats['successful_recoveries'] += 1
            if self.config.log_retries:
                _logger.info("Recovered after %d failed attempt(s)", self.attempt)
        self.attempt = 0

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the given attempt (1-based), capped and optionally jittered."""
        base = self.config.base_delay
        strategy = self.config.strategy
        if strategy == RetryStrategy.EXPONENTIAL:
            delay = base * self.config.backoff_factor ** (attempt - 1)
        elif strategy == RetryStrategy.LINEAR:
            delay = base * attempt
        else:
            delay = base

        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            spread = delay * self.config.jitter_factor
            delay = max(0.0, delay + random.uniform(-spread, spread))

        return delay

    def get_stats(self) -> Dict[str, Any]:
        return {**self.stats, 'current_attempt': self.attempt}

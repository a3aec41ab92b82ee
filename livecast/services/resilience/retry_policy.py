"""Retry policy value object and presets for platform calls."""

import random
from dataclasses import dataclass, field
from typing import Callable

from livecast.app_config import AppEnvironConfig
from livecast.utils.app_errors import AppError


def default_is_retryable(error: AppError) -> bool:
    """Retry transient failures (rate limit, 5xx, network, timeout, unknown); never auth."""
    return error.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """How many times and how far apart a failing call is retried.

    Attributes:
        max_attempts: Total attempts including the first call
        base_delay: Delay in seconds after the first failed attempt
        max_delay: Upper bound for the exponential part of the delay
        backoff_factor: Multiplier applied per attempt
        jitter_enabled: Add a uniform ``[0, 1)`` second offset to every delay
        is_retryable: Predicate over the classified error
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter_enabled: bool = True
    is_retryable: Callable[[AppError], bool] = field(default=default_is_retryable, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    def compute_delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Delay to wait after ``attempt`` (1-based) failed, before the next attempt."""
        delay = min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)
        if self.jitter_enabled:
            delay += rand()
        return delay

    @classmethod
    def api_call(cls) -> "RetryPolicy":
        return cls(max_attempts=3, base_delay=1.0, max_delay=10.0, backoff_factor=2.0)

    @classmethod
    def analytics(cls) -> "RetryPolicy":
        return cls(max_attempts=2, base_delay=3.0, max_delay=10.0, backoff_factor=2.0)

    @classmethod
    def from_app_config(cls, app_config: AppEnvironConfig) -> "RetryPolicy":
        return cls(
            max_attempts=app_config.PLATFORM_RETRY_MAX_ATTEMPTS,
            base_delay=app_config.PLATFORM_RETRY_BASE_DELAY_SECONDS,
            max_delay=app_config.PLATFORM_RETRY_MAX_DELAY_SECONDS,
        )

"""Per-dependency circuit breakers.

A breaker trips to OPEN after ``threshold`` consecutive failures and fails fast until
``reset_timeout`` seconds have passed since the last failure. The first call after that
is let through as the single HALF_OPEN probe; its outcome closes or re-opens the breaker.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from livecast.schemas import CircuitState
from livecast.utils.app_errors import CircuitOpenError

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals for the status API and logs."""

    name: str
    state: CircuitState
    failure_count: int
    threshold: int
    reset_timeout: float
    last_failure_time: float | None
    probe_in_flight: bool


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        threshold: int = 5,
        reset_timeout: float = 60.0,
        *,
        clock: Clock = time.monotonic,
    ):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.name = name
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        with self._lock:
            return self._last_failure_time

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: The breaker is open, or a half-open probe is already running
        """
        self._acquire()
        try:
            result = await operation()
        except asyncio.CancelledError:
            self._release_probe()
            raise
        except Exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                threshold=self.threshold,
                reset_timeout=self.reset_timeout,
                last_failure_time=self._last_failure_time,
                probe_in_flight=self._probe_in_flight,
            )

    def reset(self) -> None:
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._last_failure_time = None
            self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.name}' reset ({previous} -> closed)")

    def _acquire(self) -> None:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return

            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_time or 0.0)
                if elapsed <= self.reset_timeout:
                    raise CircuitOpenError(self.name)
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = True
                logger.info(
                    f"Circuit breaker '{self.name}' half-open after {elapsed:.1f}s, letting one probe through"
                )
                return

            if self._probe_in_flight:
                raise CircuitOpenError(self.name)
            self._probe_in_flight = True

    def _record_success(self) -> None:
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._probe_in_flight = False
        if previous != CircuitState.CLOSED:
            logger.info(f"Circuit breaker '{self.name}' closed")

    def _record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            tripped = self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED and self._failure_count >= self.threshold
            )
            if tripped:
                self._state = CircuitState.OPEN
            self._probe_in_flight = False
            failure_count = self._failure_count
        if tripped:
            logger.warning(
                f"Circuit breaker '{self.name}' opened after {failure_count} failures"
            )

    def _release_probe(self) -> None:
        with self._lock:
            self._probe_in_flight = False


class CircuitBreakerRegistry:
    """Owns one breaker per downstream dependency name."""

    def __init__(
        self,
        *,
        threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Clock = time.monotonic,
    ):
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name,
                    threshold=self.threshold,
                    reset_timeout=self.reset_timeout,
                    clock=self._clock,
                )
                self._breakers[name] = breaker
            return breaker

    def snapshots(self) -> list[BreakerSnapshot]:
        with self._lock:
            breakers = list(self._breakers.values())
        return [breaker.snapshot() for breaker in breakers]

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

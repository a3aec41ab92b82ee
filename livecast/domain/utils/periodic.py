import asyncio
import time
from typing import Awaitable, Callable

from loguru import logger

SleepFunc = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class PeriodicTask:
    """Runs an async callback on a fixed-interval schedule.

    - At most one tick runs at a time; deadlines missed while a tick runs are skipped.
    - ``cancel()`` called from inside the callback lets the current tick finish and
      prevents any further tick. Called from anywhere else it also cancels the
      pending wait or the running tick.
    - Exceptions raised by the callback are logged and do not stop the schedule.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str = "periodic",
        fire_immediately: bool = False,
        sleep: SleepFunc = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self.name = name
        self.tick_count = 0
        self.skipped_ticks = 0
        self._callback = callback
        self._fire_immediately = fire_immediately
        self._sleep = sleep
        self._clock = clock
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return not self._cancelled and self._task is not None and not self._task.done()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> "PeriodicTask":
        if self._task is not None:
            raise RuntimeError(f"PeriodicTask {self.name} already started")
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    def cancel(self) -> None:
        self._cancelled = True
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()

    async def stop(self) -> None:
        """Cancel and wait until the runner has exited."""
        self.cancel()
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        next_deadline = self._clock() + (0.0 if self._fire_immediately else self.interval)
        while not self._cancelled:
            delay = next_deadline - self._clock()
            if delay > 0:
                await self._sleep(delay)
            if self._cancelled:
                break

            self.tick_count += 1
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"PeriodicTask {self.name} tick {self.tick_count} failed")

            next_deadline += self.interval
            now = self._clock()
            if next_deadline <= now:
                missed = int((now - next_deadline) // self.interval) + 1
                self.skipped_ticks += missed
                next_deadline += missed * self.interval
                logger.debug(f"PeriodicTask {self.name} skipped {missed} tick(s)")

import asyncio
import heapq
import os
from typing import Callable

import pytest

# Keep tests independent from a developer's env.local
os.environ.update({"DEMO_MODE": "true", "DEBUG": "false"})


class FakeClock:
    """Virtual monotonic clock with a sleep that only returns when the test advances time.

    ``sleeps`` records every requested delay, including zero-length ones.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + seconds, self._seq, future))
        self._seq += 1
        await future

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def settle(self, rounds: int = 50) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    def _pop_next(self) -> tuple[float, asyncio.Future] | None:
        while self._sleepers:
            deadline, _, future = heapq.heappop(self._sleepers)
            if not future.done():
                return deadline, future
        return None

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking sleepers in deadline order."""
        target = self.now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            entry = self._pop_next()
            if entry is None:
                break
            deadline, future = entry
            if deadline > target:
                heapq.heappush(self._sleepers, (deadline, self._seq, future))
                self._seq += 1
                break
            self.now = max(self.now, deadline)
            future.set_result(None)
            await self.settle()
        self.now = target
        await self.settle()

    async def run_until(self, predicate: Callable[[], bool], timeout: float = 3600.0) -> None:
        """Wake sleepers one deadline at a time until ``predicate`` holds."""
        limit = self.now + timeout
        await self.settle()
        while not predicate():
            entry = self._pop_next()
            if entry is None:
                raise AssertionError("condition not reached and nothing is sleeping")
            deadline, future = entry
            if deadline > limit:
                raise AssertionError(f"condition not reached within {timeout}s of virtual time")
            self.now = max(self.now, deadline)
            future.set_result(None)
            await self.settle()


class FakeTransport:
    """Scriptable MediaTransport double recording every call."""

    def __init__(self):
        self.listeners = []
        self.calls: list = []
        self.streaming = False
        self.initialize_error: Exception | None = None
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.probe_error: Exception | None = None
        # Whether media flows after each start(); defaults to True once exhausted
        self.start_outcomes: list[bool] = []

    def add_events_listener(self, listener) -> None:
        self.listeners.append(listener)

    async def initialize(self) -> None:
        self.calls.append("initialize")
        if self.initialize_error:
            raise self.initialize_error

    async def start(self, stream_key: str, ingest_url: str) -> None:
        self.calls.append(("start", stream_key, ingest_url))
        if self.start_error:
            raise self.start_error
        self.streaming = self.start_outcomes.pop(0) if self.start_outcomes else True

    async def stop(self) -> None:
        self.calls.append("stop")
        self.streaming = False
        if self.stop_error:
            raise self.stop_error

    async def is_streaming_now(self) -> bool:
        self.calls.append("probe")
        if self.probe_error:
            raise self.probe_error
        return self.streaming

    async def switch_camera(self) -> None:
        self.calls.append("switch_camera")

    @property
    def start_calls(self) -> list:
        return [call for call in self.calls if isinstance(call, tuple) and call[0] == "start"]

    def emit_disconnection(self) -> None:
        self.streaming = False
        for listener in list(self.listeners):
            listener.on_disconnection()

    def emit_error(self, error: str) -> None:
        for listener in list(self.listeners):
            listener.on_error(error)

    def emit_connection_failed(self, reason: str) -> None:
        self.streaming = False
        for listener in list(self.listeners):
            listener.on_connection_failed(reason)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()

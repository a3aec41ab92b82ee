"""Server-side broadcast orchestrator.

Drives one BroadcastRecord through create -> poll-for-live -> live -> end against the
platform. Every platform call goes through the ResilientCallExecutor under the
``platform-api`` breaker, with a fresh access token per attempt.

The platform goes live asynchronously: after ``start_monitoring()`` the orchestrator
polls ``check_and_go_live`` on a fixed interval until the platform reports live, says
the broadcast can never go live, or the attempt budget is spent.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from pydantic import ValidationError

from livecast.domain.utils.notifier import StateListener, StateNotifier
from livecast.domain.utils.periodic import PeriodicTask
from livecast.schemas import (
    BroadcastRecord,
    BroadcastSnapshot,
    BroadcastState,
    BroadcastVisibility,
    OperationResult,
)
from livecast.services.platform import PlatformBroadcastAPI, TokenProvider
from livecast.services.resilience import BreakerSnapshot, ResilientCallExecutor, RetryPolicy
from livecast.utils.app_errors import (
    AppError,
    AuthExpiredError,
    InvalidRequestError,
    InvalidStateError,
    PlatformRequestError,
    PollExhaustedError,
    classify_error,
)

from .broadcast_models import BroadcastCreateParams, BroadcastSettings, utc_now
from .broadcast_state_machine import BroadcastStateMachine

T = TypeVar("T")

PLATFORM_DEPENDENCY = "platform-api"


class BroadcastOrchestrator:
    def __init__(
        self,
        platform: PlatformBroadcastAPI,
        token_provider: TokenProvider,
        executor: ResilientCallExecutor,
        settings: BroadcastSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or BroadcastSettings()
        self._platform = platform
        self._token_provider = token_provider
        self._executor = executor
        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._lock = asyncio.Lock()
        self._notifier: StateNotifier[BroadcastState, BroadcastSnapshot] = StateNotifier("Broadcast")
        self._record = self._new_record()
        self._poll_task: PeriodicTask | None = None
        self._end_failed = False

    # ------------------------------------------------------------------
    # Read side

    @property
    def state(self) -> BroadcastState:
        return self._record.state

    @property
    def record(self) -> BroadcastRecord:
        return self._record

    @property
    def is_monitoring(self) -> bool:
        return self._poll_task is not None and self._poll_task.is_running

    def snapshot(self) -> BroadcastSnapshot:
        record = self._record
        return BroadcastSnapshot(
            state=record.state,
            broadcast_id=record.broadcast_id,
            stream_id=record.stream_id,
            poll_attempts=record.poll_attempts,
            max_poll_attempts=record.max_poll_attempts,
            auto_live_enabled=record.auto_live_enabled,
            title=record.title,
            visibility=record.visibility,
            live_started_at=record.live_started_at,
            live_ended_at=record.live_ended_at,
            viewer_count=record.viewer_count,
            last_error=record.last_error,
            is_monitoring=self.is_monitoring,
        )

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        return self._notifier.add_listener(listener)

    def breaker_snapshots(self) -> list[BreakerSnapshot]:
        return self._executor.registry.snapshots()

    def reset_breakers(self) -> None:
        self._executor.registry.reset_all()

    # ------------------------------------------------------------------
    # Operations

    async def create(
        self,
        title: str | None = None,
        description: str | None = None,
        visibility: BroadcastVisibility | str = BroadcastVisibility.PUBLIC,
        scheduled_start: datetime | None = None,
    ) -> OperationResult:
        async with self._lock:
            if self._record.state != BroadcastState.IDLE:
                return self._reject(f"Cannot create broadcast from state {self._record.state}")

            try:
                params = BroadcastCreateParams(
                    title=title,
                    description=description,
                    visibility=visibility,
                    scheduled_start=scheduled_start,
                )
            except ValidationError as exc:
                message = "; ".join(
                    f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()
                )
                logger.warning(f"Invalid broadcast parameters: {message}")
                return OperationResult.failure(InvalidRequestError(message))

            now = self._now()
            meta = params.to_meta(now, auto_start=self.settings.auto_start)
            record = self._record
            record.title = meta.title
            record.description = meta.description
            record.visibility = meta.visibility
            record.scheduled_start = meta.scheduled_start
            self._set_state(BroadcastState.CREATING)

            try:
                broadcast = await self._platform_call(
                    lambda token: self._platform.create_broadcast(meta, access_token=token)
                )
                record.broadcast_id = broadcast.id
                record.auto_live_enabled = broadcast.auto_start

                stream_config = params.to_stream_config(now)
                stream = await self._platform_call(
                    lambda token: self._platform.create_stream(stream_config, access_token=token)
                )
                record.stream_id = stream.id
                if not stream.ingest_key:
                    raise PlatformRequestError("Platform returned no ingest credentials for the stream")
                record.ingest_key = stream.ingest_key
                record.ingest_url = stream.ingest_url or self.settings.default_ingest_url

                await self._platform_call(
                    lambda token: self._platform.bind(broadcast.id, stream.id, access_token=token)
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc)
                logger.error(f"Broadcast creation failed: {error.errcode} {error.errmesg}")
                return self._fail(error)

            self._set_state(BroadcastState.READY)
            logger.info(f"Broadcast {record.broadcast_id} ready, stream {record.stream_id} bound")
            return OperationResult.success()

    async def start_monitoring(self) -> OperationResult:
        async with self._lock:
            if self._record.state != BroadcastState.READY:
                return self._reject(f"Cannot start monitoring from state {self._record.state}")
            if self.is_monitoring:
                return OperationResult.success()

            self._record.poll_attempts = 0
            self._poll_task = PeriodicTask(
                self.settings.poll_interval,
                self._poll_tick,
                name="broadcast-poll",
                fire_immediately=True,
                sleep=self._sleep,
                clock=self._clock,
            ).start()
            logger.info(f"Monitoring broadcast {self._record.broadcast_id} every {self.settings.poll_interval}s")
            return OperationResult.success()

    async def stop_monitoring(self) -> None:
        if self._poll_task is not None:
            await self._poll_task.stop()
            self._poll_task = None

    async def force_transition_to_live(self) -> OperationResult:
        async with self._lock:
            record = self._record
            if record.state not in (BroadcastState.READY, BroadcastState.TESTING, BroadcastState.LIVE):
                return self._reject(f"Cannot force live from state {record.state}")
            if record.state == BroadcastState.LIVE:
                await self.stop_monitoring()
                return OperationResult.success()

            try:
                await self._platform_call(
                    lambda token: self._platform.transition(record.broadcast_id, "live", access_token=token)
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc)
                record.last_error = error.errmesg
                logger.warning(f"Force transition to live failed: {error.errcode} {error.errmesg}")
                return OperationResult.failure(error)

            await self.stop_monitoring()
            if record is not self._record or self._record.state not in (
                BroadcastState.READY,
                BroadcastState.TESTING,
                BroadcastState.LIVE,
            ):
                return self._reject(f"Broadcast moved to {self._record.state} during force live")
            self._go_live()
            return OperationResult.success()

    async def end(self) -> OperationResult:
        async with self._lock:
            record = self._record
            state = record.state
            can_end = state in (BroadcastState.LIVE, BroadcastState.READY, BroadcastState.TESTING) or (
                state == BroadcastState.ERROR and self._end_failed
            )
            if not can_end:
                return self._reject(f"Cannot end broadcast from state {state}")

            await self.stop_monitoring()
            self._set_state(BroadcastState.ENDING)

            try:
                await self._platform_call(
                    lambda token: self._platform.transition(record.broadcast_id, "complete", access_token=token)
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc)
                logger.error(f"Ending broadcast {record.broadcast_id} failed: {error.errcode} {error.errmesg}")
                self._end_failed = True
                return self._fail(error)

            self._end_failed = False
            record.live_ended_at = self._now()
            record.last_error = None
            self._set_state(BroadcastState.ENDED)
            return OperationResult.success()

    async def reset(self) -> OperationResult:
        async with self._lock:
            state = self._record.state
            if state in BroadcastStateMachine.NON_RESETTABLE_STATES:
                return self._reject(f"Cannot reset broadcast while {state}. End it first.")
            if state == BroadcastState.IDLE:
                return OperationResult.success()
            await self._reset_record()
            return OperationResult.success()

    async def clear_error(self) -> OperationResult:
        async with self._lock:
            if self._record.state != BroadcastState.ERROR:
                return self._reject(f"No error to clear in state {self._record.state}")
            await self._reset_record()
            return OperationResult.success()

    async def refresh_statistics(self) -> int | None:
        """Read the concurrent viewer count while live. Failures are logged, never raised."""
        record = self._record
        if record.state != BroadcastState.LIVE or not record.broadcast_id:
            return None
        broadcast_id = record.broadcast_id
        try:
            stats = await self._platform_call(
                lambda token: self._platform.get_statistics(broadcast_id, access_token=token),
                self.settings.statistics_policy,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(f"Failed to read statistics for {broadcast_id}: {exc}")
            return None
        record.viewer_count = stats.concurrent_viewers
        return stats.concurrent_viewers

    # ------------------------------------------------------------------
    # Polling

    async def _poll_tick(self) -> None:
        record = self._record
        if not BroadcastStateMachine.is_pollable(record.state):
            self._cancel_poll()
            return

        record.poll_attempts += 1
        if record.poll_attempts > record.max_poll_attempts:
            self._cancel_poll()
            logger.warning(
                f"Broadcast {record.broadcast_id} not live after {record.max_poll_attempts} polls"
            )
            self._fail(PollExhaustedError())
            return

        broadcast_id, stream_id = record.broadcast_id, record.stream_id
        try:
            result = await self._platform_call(
                lambda token: self._platform.check_and_go_live(broadcast_id, stream_id, access_token=token)
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_error(exc)
            logger.warning(
                f"Poll {record.poll_attempts}/{record.max_poll_attempts} failed: {error.errcode} {error.errmesg}"
            )
            return

        if record is not self._record or not BroadcastStateMachine.is_pollable(record.state):
            return

        if result.success and result.status == "live":
            self._cancel_poll()
            self._go_live()
        elif result.status == "testing":
            self._set_state(BroadcastState.TESTING)
        elif not result.success and not result.can_retry:
            self._cancel_poll()
            self._fail(PlatformRequestError(result.message or "Broadcast can no longer go live"))
        else:
            logger.info(
                f"Poll {record.poll_attempts}/{record.max_poll_attempts}: "
                f"status={result.status} message={result.message}"
            )

    def _cancel_poll(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()

    # ------------------------------------------------------------------
    # Helpers

    async def _platform_call(
        self,
        operation: Callable[[str], Awaitable[T]],
        policy: RetryPolicy | None = None,
    ) -> T:
        async def attempt() -> T:
            access_token = await self._get_access_token()
            try:
                return await operation(access_token)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc)
                if not isinstance(error, AuthExpiredError):
                    raise
                # The platform rejected the token: drop it and retry once with a fresh one
                logger.warning(f"Platform rejected the access token: {error.errmesg}")
                self._token_provider.invalidate()
                fresh_token = await self._get_access_token()
                if fresh_token == access_token:
                    raise error from exc
                return await operation(fresh_token)

        return await self._executor.execute(
            PLATFORM_DEPENDENCY, attempt, policy or self.settings.retry_policy
        )

    async def _get_access_token(self) -> str:
        try:
            access_token = await self._token_provider.get_valid_access_token()
        except AuthExpiredError:
            raise
        except Exception as exc:
            raise AuthExpiredError(f"Unable to obtain platform access token: {exc}") from exc
        if not access_token:
            raise AuthExpiredError("Platform access token is empty")
        return access_token

    def _go_live(self) -> None:
        record = self._record
        if record.live_started_at is None:
            record.live_started_at = self._now()
        record.last_error = None
        self._set_state(BroadcastState.LIVE)
        logger.info(f"Broadcast {record.broadcast_id} is live")

    async def _reset_record(self) -> None:
        await self.stop_monitoring()
        previous = self._record.state
        self._record = self._new_record()
        self._record.state = previous
        self._end_failed = False
        self._set_state(BroadcastState.IDLE)

    def _new_record(self) -> BroadcastRecord:
        return BroadcastRecord(max_poll_attempts=self.settings.max_poll_attempts)

    def _set_state(self, new_state: BroadcastState) -> None:
        previous = self._record.state
        if previous == new_state:
            return
        if not BroadcastStateMachine.can_transition(previous, new_state):
            raise InvalidStateError(f"Invalid broadcast transition {previous} -> {new_state}")
        self._record.state = new_state
        self._notifier.notify(previous, new_state, self.snapshot())

    def _reject(self, message: str) -> OperationResult:
        logger.warning(f"Rejected broadcast operation: {message}")
        return OperationResult.failure(InvalidStateError(message))

    def _fail(self, error: AppError) -> OperationResult:
        self._record.last_error = error.errmesg
        self._set_state(BroadcastState.ERROR)
        return OperationResult.failure(error)

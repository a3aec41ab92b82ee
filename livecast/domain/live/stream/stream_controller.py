"""Client-side transport session controller.

Owns one StreamSession and keeps it alive across transient network loss: a health
monitor probes the transport while streaming, and link loss starts an iterative
reconnection loop with exponential backoff. Public operations are serialised with a
lock and report failures through ``OperationResult``; they never raise.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from loguru import logger

from livecast.domain.utils.notifier import StateListener, StateNotifier
from livecast.domain.utils.periodic import PeriodicTask
from livecast.schemas import (
    ConnectionStatus,
    OperationResult,
    StreamQuality,
    StreamSession,
    StreamSessionSnapshot,
    StreamState,
)
from livecast.services.transport import MediaTransport
from livecast.utils.app_errors import (
    AppError,
    InvalidStateError,
    TransportError,
)

from .stream_models import StreamSessionSettings
from .stream_state_machine import StreamStateMachine

_LINK_ERROR_MARKERS = ("connection", "network")


class StreamSessionController:
    def __init__(
        self,
        transport: MediaTransport,
        settings: StreamSessionSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or StreamSessionSettings()
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._notifier: StateNotifier[StreamState, StreamSessionSnapshot] = StateNotifier("StreamSession")
        self._session = StreamSession(max_retries=self.settings.max_retries)
        self._started_monotonic: float | None = None
        self._health_monitor: PeriodicTask | None = None
        self._reconnect_task: asyncio.Task | None = None
        transport.add_events_listener(self)

    # ------------------------------------------------------------------
    # Read side

    @property
    def state(self) -> StreamState:
        return self._session.state

    @property
    def session(self) -> StreamSession:
        return self._session

    @property
    def connection_status(self) -> ConnectionStatus:
        state = self._session.state
        if state == StreamState.STREAMING:
            return ConnectionStatus.CONNECTED
        if state in (StreamState.INITIALIZING, StreamState.CONNECTING, StreamState.RECONNECTING):
            return ConnectionStatus.CONNECTING
        return ConnectionStatus.DISCONNECTED

    @property
    def stream_duration(self) -> float | None:
        """Seconds since the stream first started, or None when not started."""
        if self._started_monotonic is None:
            return None
        return max(0.0, self._clock() - self._started_monotonic)

    @property
    def is_reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def is_monitoring(self) -> bool:
        return self._health_monitor is not None and self._health_monitor.is_running

    def snapshot(self) -> StreamSessionSnapshot:
        session = self._session
        return StreamSessionSnapshot(
            state=session.state,
            has_credentials=bool(session.ingest_key),
            retry_count=session.retry_count,
            max_retries=session.max_retries,
            is_healthy=session.is_healthy,
            started_at=session.started_at,
            stream_duration_seconds=self.stream_duration,
            last_error=session.last_error,
            quality=session.quality,
            current_bitrate=session.current_bitrate,
            frame_drop_count=session.frame_drop_count,
            connection_status=self.connection_status.value,
        )

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        return self._notifier.add_listener(listener)

    # ------------------------------------------------------------------
    # Operations

    async def initialize(self) -> OperationResult:
        async with self._lock:
            if self._session.state != StreamState.IDLE:
                return self._reject(f"Cannot initialize from state {self._session.state}")

            self._set_state(StreamState.INITIALIZING)
            try:
                await self._transport.initialize()
            except asyncio.CancelledError:
                raise
            except AppError as exc:
                return self._fail(exc)
            except Exception as exc:
                logger.exception("Transport initialization failed")
                return self._fail(TransportError(f"Failed to initialize transport: {exc}"))

            self._session.last_error = None
            self._set_state(StreamState.READY)
            return OperationResult.success()

    async def start(self, ingest_key: str, ingest_url: str | None = None) -> OperationResult:
        async with self._lock:
            if self._session.state != StreamState.READY:
                return self._reject(f"Cannot start stream from state {self._session.state}")
            if not ingest_key:
                return self._reject("Stream key is required to start streaming")

            session = self._session
            session.ingest_key = ingest_key
            session.ingest_url = ingest_url or self.settings.default_ingest_url
            session.retry_count = 0
            session.last_error = None
            self._set_state(StreamState.CONNECTING)

            try:
                await self._transport.start(session.ingest_key, session.ingest_url)
                await self._sleep(self.settings.connect_settle_delay)
                is_streaming = await self._transport.is_streaming_now()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"Transport start failed: {exc}")
                return self._fail(TransportError(f"Failed to start stream: {exc}"))

            if not is_streaming:
                return self._fail(TransportError("Stream failed to establish connection"))

            if session.started_at is None:
                session.started_at = datetime.now(timezone.utc)
                self._started_monotonic = self._clock()
            self._mark_healthy()
            self._set_state(StreamState.STREAMING)
            self._start_health_monitor()
            logger.info(f"Streaming to {session.ingest_url}")
            return OperationResult.success()

    async def stop(self) -> OperationResult:
        async with self._lock:
            if self._session.state == StreamState.IDLE:
                return OperationResult.success()

            await self._cancel_background()
            self._set_state(StreamState.STOPPING)

            error: AppError | None = None
            try:
                await self._transport.stop()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"Transport stop failed: {exc}")
                error = TransportError(f"Failed to stop stream: {exc}")

            session = self._session
            session.clear_metrics()
            session.retry_count = 0
            session.last_error = error.errmesg if error else None
            self._started_monotonic = None
            self._set_state(StreamState.READY)
            return OperationResult.failure(error) if error else OperationResult.success()

    async def reset(self) -> OperationResult:
        async with self._lock:
            state = self._session.state
            if state == StreamState.STREAMING:
                return self._reject("Cannot reset while streaming. Stop the stream first.")
            if state == StreamState.IDLE:
                return OperationResult.success()

            await self._cancel_background()
            if state == StreamState.RECONNECTING:
                try:
                    await self._transport.stop()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.warning(f"Transport stop during reset failed: {exc}")

            previous_quality = self._session.quality
            self._started_monotonic = None
            self._session = StreamSession(
                state=state, max_retries=self.settings.max_retries, quality=previous_quality
            )
            self._set_state(StreamState.IDLE)
            return OperationResult.success()

    async def clear_error(self) -> OperationResult:
        async with self._lock:
            if self._session.state != StreamState.ERROR:
                self._session.last_error = None
                return OperationResult.success()
            self._session.last_error = None
            self._session.retry_count = 0
            self._set_state(StreamState.READY)
            return OperationResult.success()

    async def switch_camera(self) -> OperationResult:
        async with self._lock:
            state = self._session.state
            if state in (StreamState.IDLE, StreamState.INITIALIZING):
                return self._reject("Transport is not initialized")
            if state in (StreamState.STREAMING, StreamState.RECONNECTING):
                return self._reject(f"Cannot switch camera while {state}")
            try:
                await self._transport.switch_camera()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"Camera switch failed: {exc}")
                return OperationResult.failure(TransportError(f"Failed to switch camera: {exc}"))
            return OperationResult.success()

    async def update_quality(self, quality: StreamQuality) -> OperationResult:
        async with self._lock:
            session = self._session
            session.quality = quality
            if session.state == StreamState.STREAMING:
                session.current_bitrate = float(quality.video_bitrate)
            logger.info(f"Stream quality set to {quality} ({quality.resolution})")
            return OperationResult.success()

    # ------------------------------------------------------------------
    # Transport events

    def on_connection_success(self) -> None:
        logger.debug("Transport reported connection success")

    def on_connection_failed(self, reason: str) -> None:
        logger.warning(f"Transport connection failed: {reason}")
        self._begin_reconnection(f"Connection failed: {reason}")

    def on_disconnection(self) -> None:
        logger.warning("Transport disconnected")
        self._begin_reconnection("Transport disconnected")

    def on_error(self, error: str) -> None:
        self._session.frame_drop_count += 1
        logger.warning(f"Transport error: {error}")
        lowered = error.lower()
        if any(marker in lowered for marker in _LINK_ERROR_MARKERS):
            self._begin_reconnection(error)

    # ------------------------------------------------------------------
    # Health monitoring

    def _start_health_monitor(self) -> None:
        if self._health_monitor is not None:
            self._health_monitor.cancel()
        self._health_monitor = PeriodicTask(
            self.settings.health_check_interval,
            self._health_tick,
            name="stream-health",
            sleep=self._sleep,
            clock=self._clock,
        ).start()

    async def _health_tick(self) -> None:
        if self._session.state != StreamState.STREAMING:
            if self._health_monitor is not None:
                self._health_monitor.cancel()
            return

        try:
            is_streaming = await self._transport.is_streaming_now()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Health check probe failed")
            self._session.is_healthy = False
            if self._session.state == StreamState.STREAMING:
                self._begin_reconnection(f"Health check failed: {exc}")
            return

        if self._session.state != StreamState.STREAMING:
            return
        if not is_streaming:
            self._session.is_healthy = False
            self._begin_reconnection("Health check failed: stream is not active")
            return
        self._mark_healthy()

    def _mark_healthy(self) -> None:
        self._session.is_healthy = True
        self._session.current_bitrate = float(self._session.quality.video_bitrate)

    # ------------------------------------------------------------------
    # Reconnection

    def _begin_reconnection(self, reason: str) -> None:
        if self._session.state != StreamState.STREAMING or self.is_reconnecting:
            return

        self._session.is_healthy = False
        self._session.last_error = reason
        if self._health_monitor is not None:
            self._health_monitor.cancel()
        self._set_state(StreamState.RECONNECTING)
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_loop(reason), name="stream-reconnect"
        )

    async def _reconnect_loop(self, reason: str) -> None:
        session = self._session
        last_error = reason

        while True:
            if session.retry_count >= session.max_retries:
                self._exhaust_retries(last_error)
                return

            session.retry_count += 1
            attempt = session.retry_count
            delay = self.settings.reconnect_delay(attempt)
            logger.info(f"Reconnecting in {delay:.0f}s (attempt {attempt}/{session.max_retries})")
            await self._sleep(delay)

            try:
                reconnected = await self._restart_transport()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"Reconnection attempt {attempt} failed: {exc}")
                reconnected = False
                last_error = str(exc) or type(exc).__name__
            else:
                if not reconnected:
                    last_error = "Stream did not resume after restart"

            if reconnected:
                session.retry_count = 0
                session.last_error = None
                self._mark_healthy()
                self._set_state(StreamState.STREAMING)
                self._start_health_monitor()
                logger.info(f"Reconnected after {attempt} attempt(s)")
                return

            session.last_error = last_error
            if session.retry_count < session.max_retries:
                await self._sleep(self.settings.retry_pause)
                continue

            self._exhaust_retries(last_error)
            return

    async def _restart_transport(self) -> bool:
        session = self._session
        if await self._transport.is_streaming_now():
            await self._transport.stop()
        await self._sleep(self.settings.restart_settle_delay)
        await self._transport.start(session.ingest_key, session.ingest_url)
        await self._sleep(self.settings.connect_settle_delay)
        return await self._transport.is_streaming_now()

    def _exhaust_retries(self, last_error: str) -> None:
        message = (
            f"Maximum retry attempts reached ({self._session.max_retries}). "
            f"Last error: {last_error}"
        )
        logger.error(message)
        self._session.last_error = message
        self._session.is_healthy = False
        self._set_state(StreamState.ERROR)

    async def _cancel_background(self) -> None:
        if self._health_monitor is not None:
            await self._health_monitor.stop()
            self._health_monitor = None

        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # State helpers

    def _set_state(self, new_state: StreamState) -> None:
        previous = self._session.state
        if previous == new_state:
            return
        if not StreamStateMachine.can_transition(previous, new_state):
            raise InvalidStateError(f"Invalid stream transition {previous} -> {new_state}")
        self._session.state = new_state
        self._notifier.notify(previous, new_state, self.snapshot())

    def _reject(self, message: str) -> OperationResult:
        logger.warning(f"Rejected stream operation: {message}")
        return OperationResult.failure(InvalidStateError(message))

    def _fail(self, error: AppError) -> OperationResult:
        self._session.last_error = error.errmesg
        self._session.is_healthy = False
        self._set_state(StreamState.ERROR)
        return OperationResult.failure(error)

"""Tests for SessionCoordinator wiring a stream controller to a broadcast orchestrator."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from livecast.app_config import AppEnvironConfig
from livecast.domain.live.broadcast.broadcast_models import BroadcastCreateParams, BroadcastSettings
from livecast.domain.live.broadcast.broadcast_orchestrator import BroadcastOrchestrator
from livecast.domain.live.coordinator import SessionCoordinator, build_session_coordinator
from livecast.domain.live.coordinator.coordinator_factory import load_media_transport
from livecast.domain.live.stream.stream_controller import StreamSessionController
from livecast.schemas import BroadcastState, StreamState
from livecast.services.platform import GoLiveCheck, PlatformBroadcast, PlatformStream, StaticTokenProvider
from livecast.services.resilience import CircuitBreakerRegistry, ResilientCallExecutor
from livecast.services.transport import DemoTransport
from livecast.utils.app_errors import InvalidStateError, PlatformRequestError, TransportError


@pytest.fixture
def platform() -> AsyncMock:
    platform = AsyncMock()
    platform.create_broadcast.return_value = PlatformBroadcast(id="bc1", lifecycle_status="created")
    platform.create_stream.return_value = PlatformStream(
        id="st1", ingest_url="rtmp://ingest.test/live2", ingest_key="key-1"
    )
    platform.transition.return_value = PlatformBroadcast(id="bc1", lifecycle_status="complete")
    platform.check_and_go_live.return_value = GoLiveCheck(success=False, status="ready")
    return platform


@pytest.fixture
def coordinator(platform, fake_transport, fake_clock) -> SessionCoordinator:
    controller = StreamSessionController(fake_transport, sleep=fake_clock.sleep, clock=fake_clock)
    executor = ResilientCallExecutor(CircuitBreakerRegistry(), sleep=AsyncMock(), rand=lambda: 0.0)
    orchestrator = BroadcastOrchestrator(
        platform,
        StaticTokenProvider("tok"),
        executor,
        BroadcastSettings(poll_interval=10.0),
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )
    return SessionCoordinator(controller, orchestrator)


async def _run(fake_clock, coro):
    task = asyncio.create_task(coro)
    await fake_clock.run_until(task.done)
    return task.result()


class TestGoLive:
    async def test_go_live_starts_both_sides(self, coordinator, platform, fake_transport, fake_clock):
        # Act
        result = await _run(fake_clock, coordinator.go_live(BroadcastCreateParams(title="Show")))

        # Assert
        assert result.ok
        assert result.errors == []
        assert fake_transport.calls[0] == "initialize"
        assert fake_transport.start_calls == [("start", "key-1", "rtmp://ingest.test/live2")]
        status = coordinator.status()
        assert status.stream.state == StreamState.STREAMING
        assert status.broadcast.state == BroadcastState.READY
        assert status.broadcast.is_monitoring is True
        assert status.is_live is False

        # Act: the platform picks up the media
        platform.check_and_go_live.return_value = GoLiveCheck(success=True, status="live")
        await fake_clock.advance(10.0)

        # Assert
        assert coordinator.status().is_live is True

    async def test_transport_failure_still_ends_broadcast(self, coordinator, platform, fake_transport, fake_clock):
        fake_transport.start_error = ConnectionError("ingest unreachable")

        result = await _run(fake_clock, coordinator.go_live())

        assert not result.ok
        assert [type(error) for error in result.errors] == [TransportError]
        assert coordinator.controller.state == StreamState.ERROR
        assert coordinator.orchestrator.state == BroadcastState.ENDED
        platform.transition.assert_awaited_once_with("bc1", "complete", access_token="tok")
        assert not coordinator.orchestrator.is_monitoring

    async def test_create_failure_skips_transport(self, coordinator, platform, fake_transport, fake_clock):
        platform.create_broadcast.side_effect = PlatformRequestError("quota exceeded")

        result = await _run(fake_clock, coordinator.go_live())

        assert not result.ok
        assert result.message == "quota exceeded"
        assert fake_transport.start_calls == []

    async def test_go_live_again_after_end(self, coordinator, platform, fake_clock):
        await _run(fake_clock, coordinator.go_live())
        await coordinator.stop_live()
        assert coordinator.orchestrator.state == BroadcastState.ENDED

        result = await _run(fake_clock, coordinator.go_live())

        assert result.ok
        assert platform.create_broadcast.await_count == 2
        assert coordinator.controller.state == StreamState.STREAMING


class TestStopLive:
    async def test_stop_live(self, coordinator, platform, fake_clock):
        await _run(fake_clock, coordinator.go_live())

        result = await coordinator.stop_live()

        assert result.ok
        assert coordinator.controller.state == StreamState.READY
        assert coordinator.orchestrator.state == BroadcastState.ENDED

    async def test_collects_both_errors(self, coordinator, platform, fake_transport, fake_clock):
        # Arrange
        await _run(fake_clock, coordinator.go_live())
        fake_transport.stop_error = RuntimeError("socket closed")
        platform.transition.side_effect = PlatformRequestError("Broadcast cannot be completed")

        # Act
        result = await coordinator.stop_live()

        # Assert
        assert not result.ok
        assert [type(error) for error in result.errors] == [TransportError, PlatformRequestError]
        assert result.message == "Failed to stop stream: socket closed; Broadcast cannot be completed"

    async def test_stop_live_with_nothing_running(self, coordinator):
        result = await coordinator.stop_live()

        assert not result.ok
        assert [type(error) for error in result.errors] == [InvalidStateError]


class TestOtherOperations:
    async def test_force_live(self, coordinator, platform, fake_clock):
        await _run(fake_clock, coordinator.go_live())
        platform.transition.return_value = PlatformBroadcast(id="bc1", lifecycle_status="live")

        result = await coordinator.force_live()

        assert result.ok
        assert coordinator.status().is_live is True

    async def test_reset_after_failed_go_live(self, coordinator, fake_transport, fake_clock):
        fake_transport.start_error = ConnectionError("ingest unreachable")
        await _run(fake_clock, coordinator.go_live())

        result = await coordinator.reset()

        assert result.ok
        assert coordinator.controller.state == StreamState.IDLE
        assert coordinator.orchestrator.state == BroadcastState.IDLE

    async def test_reset_while_streaming_is_rejected(self, coordinator, fake_clock):
        await _run(fake_clock, coordinator.go_live())

        result = await coordinator.reset()

        assert not result.ok
        assert isinstance(result.errors[0], InvalidStateError)

    async def test_shutdown_releases_timers_and_transport(self, coordinator, fake_transport, fake_clock):
        await _run(fake_clock, coordinator.go_live())

        await coordinator.shutdown()

        assert not coordinator.orchestrator.is_monitoring
        assert not coordinator.controller.is_monitoring
        assert fake_transport.calls[-1] == "stop"
        assert coordinator.orchestrator.state == BroadcastState.READY


class TestFactory:
    def test_demo_wiring(self):
        app_config = AppEnvironConfig(DEMO_MODE=True)

        coordinator = build_session_coordinator(app_config)

        assert coordinator.controller.state == StreamState.IDLE
        assert coordinator.orchestrator.state == BroadcastState.IDLE
        assert coordinator.breakers() == []

    def test_load_media_transport(self):
        transport = load_media_transport("livecast.services.transport.media_transport:DemoTransport")

        assert isinstance(transport, DemoTransport)

    def test_load_media_transport_requires_class(self):
        with pytest.raises(ValueError):
            load_media_transport("livecast.services.transport.media_transport")

"""Unit tests for the DEMO_MODE media transport."""

from unittest.mock import MagicMock

import pytest

from livecast.services.transport import DemoTransport
from livecast.utils.app_errors import PermissionDeniedError, TransportError


class TestDemoTransport:
    async def test_initialize_requires_permissions(self):
        transport = DemoTransport(permissions_granted=False)

        with pytest.raises(PermissionDeniedError):
            await transport.initialize()

    async def test_start_before_initialize_fails(self):
        with pytest.raises(TransportError):
            await DemoTransport().start("key", "rtmp://ingest/live2")

    async def test_start_notifies_listeners(self):
        transport = DemoTransport()
        listener = MagicMock()
        transport.add_events_listener(listener)
        await transport.initialize()

        await transport.start("key", "rtmp://ingest/live2")

        assert await transport.is_streaming_now() is True
        assert (transport.stream_key, transport.ingest_url) == ("key", "rtmp://ingest/live2")
        listener.on_connection_success.assert_called_once_with()

    async def test_stop_and_switch_camera(self):
        transport = DemoTransport()
        await transport.initialize()
        await transport.start("key", "rtmp://ingest/live2")

        await transport.switch_camera()
        await transport.stop()

        assert transport.camera == "front"
        assert await transport.is_streaming_now() is False

    def test_simulated_events_reach_listeners(self):
        transport = DemoTransport()
        listener = MagicMock()
        transport.add_events_listener(listener)

        transport.simulate_disconnection()
        transport.simulate_error("network unreachable")

        listener.on_disconnection.assert_called_once_with()
        listener.on_error.assert_called_once_with("network unreachable")

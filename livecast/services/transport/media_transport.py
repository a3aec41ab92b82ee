"""Media transport interface and the in-process demo transport.

Real transports (RTMP encoders, native camera bridges) live outside this service and
only need to satisfy ``MediaTransport``. Listener callbacks are invoked on the event loop
thread; failures of the async methods are raised as exceptions.
"""

from typing import Protocol

from loguru import logger

from livecast.utils.app_errors import PermissionDeniedError, TransportError


class TransportEventsListener(Protocol):
    def on_connection_success(self) -> None: ...

    def on_connection_failed(self, reason: str) -> None: ...

    def on_disconnection(self) -> None: ...

    def on_error(self, error: str) -> None: ...


class MediaTransport(Protocol):
    async def initialize(self) -> None:
        """Acquire capture permissions and prepare the encoder."""
        ...

    async def start(self, stream_key: str, ingest_url: str) -> None: ...

    async def stop(self) -> None: ...

    async def is_streaming_now(self) -> bool: ...

    async def switch_camera(self) -> None: ...

    def add_events_listener(self, listener: TransportEventsListener) -> None: ...


class DemoTransport:
    """Transport stand-in for DEMO_MODE: no media, just the state and events a real one reports."""

    def __init__(self, *, permissions_granted: bool = True):
        self.permissions_granted = permissions_granted
        self.initialized = False
        self.streaming = False
        self.camera = "back"
        self.stream_key: str | None = None
        self.ingest_url: str | None = None
        self._listeners: list[TransportEventsListener] = []

    def add_events_listener(self, listener: TransportEventsListener) -> None:
        self._listeners.append(listener)

    async def initialize(self) -> None:
        if not self.permissions_granted:
            raise PermissionDeniedError("Camera and microphone permissions are required")
        self.initialized = True
        logger.info("Demo transport initialized")

    async def start(self, stream_key: str, ingest_url: str) -> None:
        if not self.initialized:
            raise TransportError("Transport is not initialized")
        self.stream_key = stream_key
        self.ingest_url = ingest_url
        self.streaming = True
        logger.info(f"Demo transport pushing to {ingest_url}")
        for listener in list(self._listeners):
            listener.on_connection_success()

    async def stop(self) -> None:
        self.streaming = False
        logger.info("Demo transport stopped")

    async def is_streaming_now(self) -> bool:
        return self.streaming

    async def switch_camera(self) -> None:
        self.camera = "front" if self.camera == "back" else "back"
        logger.info(f"Demo transport switched to {self.camera} camera")

    def simulate_disconnection(self) -> None:
        self.streaming = False
        for listener in list(self._listeners):
            listener.on_disconnection()

    def simulate_error(self, error: str) -> None:
        for listener in list(self._listeners):
            listener.on_error(error)

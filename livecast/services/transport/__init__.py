from .media_transport import DemoTransport, MediaTransport, TransportEventsListener

__all__ = ["DemoTransport", "MediaTransport", "TransportEventsListener"]

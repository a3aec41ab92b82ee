"""Wires the live coordinator from application settings."""

from importlib import import_module

from loguru import logger

from livecast.app_config import AppEnvironConfig, get_app_environ_config
from livecast.domain.live.broadcast.broadcast_models import BroadcastSettings
from livecast.domain.live.broadcast.broadcast_orchestrator import BroadcastOrchestrator
from livecast.domain.live.stream.stream_controller import StreamSessionController
from livecast.domain.live.stream.stream_models import StreamSessionSettings
from livecast.services.platform import PlatformClient, build_token_provider
from livecast.services.resilience import CircuitBreakerRegistry, ResilientCallExecutor
from livecast.services.transport import MediaTransport

from .session_coordinator import SessionCoordinator


def load_media_transport(import_path: str) -> MediaTransport:
    module_name, _, class_name = import_path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"MEDIA_TRANSPORT_CLASS must look like 'module:Class', got {import_path!r}")
    transport_cls = getattr(import_module(module_name), class_name)
    logger.info(f"Using media transport {import_path}")
    return transport_cls()


def build_session_coordinator(app_config: AppEnvironConfig) -> SessionCoordinator:
    registry = CircuitBreakerRegistry(
        threshold=app_config.CIRCUIT_BREAKER_THRESHOLD,
        reset_timeout=app_config.CIRCUIT_BREAKER_RESET_TIMEOUT_SECONDS,
    )
    executor = ResilientCallExecutor(registry)

    controller = StreamSessionController(
        load_media_transport(app_config.MEDIA_TRANSPORT_CLASS),
        StreamSessionSettings.from_app_config(app_config),
    )
    orchestrator = BroadcastOrchestrator(
        PlatformClient.from_app_config(app_config),
        build_token_provider(app_config),
        executor,
        BroadcastSettings.from_app_config(app_config),
    )
    return SessionCoordinator(controller, orchestrator)


_session_coordinator: SessionCoordinator | None = None


def get_session_coordinator() -> SessionCoordinator:
    """Process-wide coordinator, created on first use."""
    global _session_coordinator
    if _session_coordinator is None:
        _session_coordinator = build_session_coordinator(get_app_environ_config())
    return _session_coordinator

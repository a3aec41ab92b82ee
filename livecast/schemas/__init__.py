"""Pydantic schemas and value objects shared across layers."""

from .broadcast_record import BroadcastRecord, BroadcastSnapshot
from .operation_result import CombinedResult, OperationResult
from .stream_session import StreamSession, StreamSessionSnapshot
from .stream_state import (
    BroadcastState,
    BroadcastVisibility,
    CircuitState,
    ConnectionStatus,
    StreamQuality,
    StreamState,
)

__all__ = [
    "BroadcastRecord",
    "BroadcastSnapshot",
    "BroadcastState",
    "BroadcastVisibility",
    "CircuitState",
    "CombinedResult",
    "ConnectionStatus",
    "OperationResult",
    "StreamQuality",
    "StreamSession",
    "StreamSessionSnapshot",
    "StreamState",
]

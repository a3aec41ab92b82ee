"""Common enums used across schemas."""

from enum import Enum


class StreamState(str, Enum):
    """Transport session lifecycle states.

    State Transition Flow:

    IDLE → INITIALIZING → READY → CONNECTING → STREAMING ⇄ RECONNECTING
                ↓                     ↓            ↓            ↓
              ERROR                 ERROR       STOPPING → READY   ERROR

    State Descriptions:
    - IDLE: Nothing prepared. Set at construction and by reset().
    - INITIALIZING: Acquiring capture permissions and preparing the transport.
    - READY: Transport prepared, waiting for ingest credentials. Set after initialize() and stop().
    - CONNECTING: start() pushed credentials to the transport, waiting for the liveness probe.
    - STREAMING: Probe confirmed media is flowing.
    - RECONNECTING: Link lost, backoff loop running.
    - STOPPING: Transport teardown in progress.
    - ERROR: Terminal until the operator calls stop(), clear_error() or reset().
    """

    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPING = "stopping"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class BroadcastState(str, Enum):
    """Platform broadcast lifecycle states.

    State Transition Flow:

    IDLE → CREATING → READY → TESTING → LIVE → ENDING → ENDED
              ↓         ↓        ↓                 ↓
            ERROR     ERROR    ERROR             ERROR

    - READY: Broadcast, stream and binding exist on the platform; ingest credentials known.
    - TESTING: Platform reports the broadcast in its preview/testing phase.
    - LIVE: Platform confirmed the broadcast is live.
    - ENDED: Platform acknowledged the transition to complete.
    """

    IDLE = "idle"
    CREATING = "creating"
    READY = "ready"
    TESTING = "testing"
    LIVE = "live"
    ENDING = "ending"
    ENDED = "ended"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def polling_terminal_states(cls) -> set["BroadcastState"]:
        """States after which the platform is never polled again."""
        return {BroadcastState.LIVE, BroadcastState.ENDED, BroadcastState.ERROR}


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __str__(self) -> str:
        return self.value


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"

    def __str__(self) -> str:
        return self.value


class StreamQuality(str, Enum):
    """Transport quality presets: (resolution, video bitrate in bps)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    AUTO = "auto"

    def __str__(self) -> str:
        return self.value

    @property
    def resolution(self) -> str:
        return {
            StreamQuality.LOW: "480p",
            StreamQuality.MEDIUM: "720p",
            StreamQuality.HIGH: "1080p",
            StreamQuality.AUTO: "720p",
        }[self]

    @property
    def video_bitrate(self) -> int:
        return {
            StreamQuality.LOW: 1_000_000,
            StreamQuality.MEDIUM: 2_500_000,
            StreamQuality.HIGH: 4_000_000,
            StreamQuality.AUTO: 2_500_000,
        }[self]


class BroadcastVisibility(str, Enum):
    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "BroadcastState",
    "BroadcastVisibility",
    "CircuitState",
    "ConnectionStatus",
    "StreamQuality",
    "StreamState",
]

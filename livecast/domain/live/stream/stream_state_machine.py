"""Transport session state machine."""

from livecast.schemas import StreamState


class StreamStateMachine:
    """Valid transitions of a StreamSessionController.

    State flow with triggers:
    - IDLE -> INITIALIZING (initialize())
    - INITIALIZING -> READY (transport prepared) | ERROR (permission denied, transport failure)
    - READY -> CONNECTING (start()) | STOPPING (stop()) | IDLE (reset())
    - CONNECTING -> STREAMING (liveness probe passed) | ERROR (start failed or probe negative)
    - STREAMING -> RECONNECTING (disconnection, failed health check, network error) | STOPPING
    - RECONNECTING -> STREAMING (reconnected) | ERROR (retries exhausted) | STOPPING | IDLE
    - STOPPING -> READY
    - ERROR -> STOPPING (stop()) | READY (clear_error()) | IDLE (reset())
    """

    TRANSITIONS: dict[StreamState, set[StreamState]] = {
        StreamState.IDLE: {StreamState.INITIALIZING},
        StreamState.INITIALIZING: {StreamState.READY, StreamState.ERROR},
        StreamState.READY: {StreamState.CONNECTING, StreamState.STOPPING, StreamState.IDLE},
        StreamState.CONNECTING: {StreamState.STREAMING, StreamState.ERROR},
        StreamState.STREAMING: {StreamState.RECONNECTING, StreamState.STOPPING},
        StreamState.RECONNECTING: {
            StreamState.STREAMING,
            StreamState.ERROR,
            StreamState.STOPPING,
            StreamState.IDLE,
        },
        StreamState.STOPPING: {StreamState.READY},
        StreamState.ERROR: {StreamState.STOPPING, StreamState.READY, StreamState.IDLE},
    }

    # States in which the transport may be pushing media
    ACTIVE_STATES: set[StreamState] = {
        StreamState.CONNECTING,
        StreamState.STREAMING,
        StreamState.RECONNECTING,
    }

    @classmethod
    def can_transition(cls, current: StreamState, new: StreamState) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: StreamState) -> set[StreamState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: StreamState) -> set[StreamState]:
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}

    @classmethod
    def is_active(cls, state: StreamState) -> bool:
        return state in cls.ACTIVE_STATES

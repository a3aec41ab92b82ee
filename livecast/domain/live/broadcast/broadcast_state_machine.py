"""Platform broadcast state machine."""

from livecast.schemas import BroadcastState


class BroadcastStateMachine:
    """Valid transitions of a BroadcastOrchestrator.

    State flow with triggers:
    - IDLE -> CREATING (create())
    - CREATING -> READY (broadcast, stream and binding created) | ERROR
    - READY -> TESTING (poll reports testing) | LIVE (poll reports live, force live) | ENDING | ERROR
    - TESTING -> LIVE | ENDING | ERROR
    - LIVE -> ENDING (end())
    - ENDING -> ENDED (platform acknowledged complete) | ERROR (end may be retried)
    - ERROR -> ENDING (retry a failed end) | IDLE (reset(), clear_error())
    - READY/TESTING/ENDED -> IDLE (reset())
    """

    TRANSITIONS: dict[BroadcastState, set[BroadcastState]] = {
        BroadcastState.IDLE: {BroadcastState.CREATING},
        BroadcastState.CREATING: {BroadcastState.READY, BroadcastState.ERROR},
        BroadcastState.READY: {
            BroadcastState.TESTING,
            BroadcastState.LIVE,
            BroadcastState.ENDING,
            BroadcastState.ERROR,
            BroadcastState.IDLE,
        },
        BroadcastState.TESTING: {
            BroadcastState.LIVE,
            BroadcastState.ENDING,
            BroadcastState.ERROR,
            BroadcastState.IDLE,
        },
        BroadcastState.LIVE: {BroadcastState.ENDING},
        BroadcastState.ENDING: {BroadcastState.ENDED, BroadcastState.ERROR},
        BroadcastState.ENDED: {BroadcastState.IDLE},
        BroadcastState.ERROR: {BroadcastState.ENDING, BroadcastState.IDLE},
    }

    # Polling is only meaningful while waiting for the platform to go live
    POLLABLE_STATES: set[BroadcastState] = {BroadcastState.READY, BroadcastState.TESTING}

    # reset() is refused while the broadcast is on air
    NON_RESETTABLE_STATES: set[BroadcastState] = {BroadcastState.LIVE, BroadcastState.ENDING}

    @classmethod
    def can_transition(cls, current: BroadcastState, new: BroadcastState) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: BroadcastState) -> set[BroadcastState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: BroadcastState) -> set[BroadcastState]:
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}

    @classmethod
    def is_pollable(cls, state: BroadcastState) -> bool:
        return state in cls.POLLABLE_STATES

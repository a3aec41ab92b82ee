from .coordinator_factory import build_session_coordinator, get_session_coordinator
from .session_coordinator import LiveStatus, SessionCoordinator

__all__ = [
    "LiveStatus",
    "SessionCoordinator",
    "build_session_coordinator",
    "get_session_coordinator",
]

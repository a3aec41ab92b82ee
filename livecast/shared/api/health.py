from fastapi import APIRouter, Depends
from pydantic import BaseModel

from livecast.app_config import get_app_environ_config
from livecast.domain.live.coordinator import SessionCoordinator, get_session_coordinator
from livecast.schemas import CircuitState

from .utils import ApiSuccess

router = APIRouter()


class HealthOut(BaseModel):
    status: str
    demo_mode: bool
    open_breakers: list[str]


@router.get("/health", response_model=ApiSuccess)
async def health(coordinator: SessionCoordinator = Depends(get_session_coordinator)):
    """Liveness plus a hint when an upstream breaker is open."""
    open_breakers = [
        snapshot.name for snapshot in coordinator.breakers() if snapshot.state != CircuitState.CLOSED
    ]
    return ApiSuccess(
        results=HealthOut(
            status="degraded" if open_breakers else "OK",
            demo_mode=get_app_environ_config().DEMO_MODE,
            open_breakers=open_breakers,
        )
    )

from fastapi import APIRouter, Depends

from livecast.api.v1.schemas.live import ApiOut, BreakerOut, GoLiveIn, LiveOperationOut, StatisticsOut
from livecast.domain.live.broadcast.broadcast_models import BroadcastCreateParams
from livecast.domain.live.coordinator import LiveStatus, SessionCoordinator, get_session_coordinator
from livecast.schemas import CombinedResult
from livecast.utils.app_errors import AppError

router = APIRouter(prefix="/v1/live")


def _raise_on_failure(result: CombinedResult) -> None:
    if result.ok:
        return
    if len(result.errors) == 1:
        raise result.errors[0]
    first = result.errors[0] if result.errors else AppError()
    raise AppError(result.message, errcode=first.errcode, status_code=first.status_code)


@router.post("/go_live")
async def go_live(
    body: GoLiveIn,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[LiveOperationOut]:
    """Create the broadcast, start polling for live and start pushing media."""
    params = BroadcastCreateParams(**body.model_dump())
    result = await coordinator.go_live(params)
    _raise_on_failure(result)
    return ApiOut[LiveOperationOut](results=LiveOperationOut.from_result(result))


@router.post("/stop_live")
async def stop_live(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[LiveOperationOut]:
    """Stop the transport, then end the broadcast."""
    result = await coordinator.stop_live()
    _raise_on_failure(result)
    return ApiOut[LiveOperationOut](results=LiveOperationOut.from_result(result))


@router.post("/force_live")
async def force_live(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[LiveOperationOut]:
    """Transition the broadcast to live without waiting for the platform."""
    result = await coordinator.force_live()
    _raise_on_failure(result)
    return ApiOut[LiveOperationOut](results=LiveOperationOut.from_result(result))


@router.post("/reset")
async def reset(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[LiveOperationOut]:
    result = await coordinator.reset()
    _raise_on_failure(result)
    return ApiOut[LiveOperationOut](results=LiveOperationOut.from_result(result))


@router.get("/status")
async def get_status(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[LiveStatus]:
    return ApiOut[LiveStatus](results=coordinator.status())


@router.get("/statistics")
async def get_statistics(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[StatisticsOut]:
    viewer_count = await coordinator.refresh_statistics()
    return ApiOut[StatisticsOut](results=StatisticsOut(viewer_count=viewer_count))


@router.get("/breakers")
async def get_breakers(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[list[BreakerOut]]:
    return ApiOut[list[BreakerOut]](
        results=[BreakerOut.from_snapshot(snapshot) for snapshot in coordinator.breakers()]
    )


@router.post("/breakers/reset")
async def reset_breakers(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> ApiOut[list[BreakerOut]]:
    coordinator.reset_breakers()
    return ApiOut[list[BreakerOut]](
        results=[BreakerOut.from_snapshot(snapshot) for snapshot in coordinator.breakers()]
    )

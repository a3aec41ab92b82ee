from dataclasses import asdict
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from livecast.domain.live.broadcast.broadcast_models import BroadcastCreateParams
from livecast.schemas import CircuitState, CombinedResult
from livecast.services.resilience import BreakerSnapshot
from livecast.shared.api.utils import ApiSuccess

T = TypeVar("T")


class ApiOut(ApiSuccess, Generic[T]):
    results: T  # type: ignore[valid-type]


class GoLiveIn(BroadcastCreateParams):
    """Broadcast metadata for a new go-live; every field is optional."""


class LiveOperationOut(BaseModel):
    ok: bool
    errors: list[str] = Field(default_factory=list, description="Messages of non-fatal step failures")

    @classmethod
    def from_result(cls, result: CombinedResult) -> "LiveOperationOut":
        return cls(ok=result.ok, errors=[error.errmesg for error in result.errors])


class BreakerOut(BaseModel):
    name: str
    state: CircuitState
    failure_count: int
    threshold: int
    reset_timeout: float
    last_failure_time: float | None = None
    probe_in_flight: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: BreakerSnapshot) -> "BreakerOut":
        return cls(**asdict(snapshot))


class StatisticsOut(BaseModel):
    viewer_count: int | None = Field(
        default=None, description="Concurrent viewers, null when not live or unavailable"
    )

"""Platform broadcast record owned by a BroadcastOrchestrator."""

from datetime import datetime

from pydantic import BaseModel, Field

from .stream_state import BroadcastState, BroadcastVisibility


class BroadcastRecord(BaseModel):
    """One broadcast + ingest stream pair on the platform."""

    state: BroadcastState = BroadcastState.IDLE

    # Platform identifiers, immutable once CREATING succeeds
    broadcast_id: str | None = None
    stream_id: str | None = None
    ingest_url: str | None = None
    ingest_key: str | None = None

    poll_attempts: int = Field(default=0, ge=0)
    max_poll_attempts: int = Field(default=30, ge=1)
    auto_live_enabled: bool = Field(
        default=False,
        description="Hint that the platform may transition the broadcast to live on its own",
    )

    title: str | None = None
    description: str | None = None
    visibility: BroadcastVisibility = BroadcastVisibility.PUBLIC
    scheduled_start: datetime | None = None

    live_started_at: datetime | None = None
    live_ended_at: datetime | None = None
    viewer_count: int = 0
    last_error: str | None = None

    @property
    def has_ingest(self) -> bool:
        return bool(self.ingest_key and self.broadcast_id)


class BroadcastSnapshot(BaseModel):
    """Read-only view handed to observers and the API layer."""

    state: BroadcastState
    broadcast_id: str | None
    stream_id: str | None
    poll_attempts: int
    max_poll_attempts: int
    auto_live_enabled: bool
    title: str | None
    visibility: BroadcastVisibility
    live_started_at: datetime | None
    live_ended_at: datetime | None
    viewer_count: int
    last_error: str | None
    is_monitoring: bool

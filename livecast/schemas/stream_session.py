"""Transport session record owned by a StreamSessionController."""

from datetime import datetime

from pydantic import BaseModel, Field

from .stream_state import StreamQuality, StreamState


class StreamSession(BaseModel):
    """One active "go live" attempt on the client transport."""

    state: StreamState = StreamState.IDLE
    ingest_key: str | None = Field(default=None, description="Transport stream key")
    ingest_url: str | None = Field(default=None, description="Transport ingest endpoint")
    retry_count: int = Field(
        default=0,
        ge=0,
        description="Reconnection attempts since the last successful (re)connection",
    )
    max_retries: int = Field(default=5, ge=0)
    is_healthy: bool = False
    started_at: datetime | None = Field(
        default=None, description="Set on the first successful stream start, cleared on stop"
    )
    last_error: str | None = None

    # Health metrics
    quality: StreamQuality = StreamQuality.MEDIUM
    current_bitrate: float = 0.0
    frame_drop_count: int = 0

    def clear_metrics(self) -> None:
        self.started_at = None
        self.current_bitrate = 0.0
        self.frame_drop_count = 0
        self.is_healthy = False


class StreamSessionSnapshot(BaseModel):
    """Read-only view handed to observers and the API layer."""

    state: StreamState
    has_credentials: bool
    retry_count: int
    max_retries: int
    is_healthy: bool
    started_at: datetime | None
    stream_duration_seconds: float | None
    last_error: str | None
    quality: StreamQuality
    current_bitrate: float
    frame_drop_count: int
    connection_status: str

"""Broadcast domain models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from livecast.app_config import AppEnvironConfig
from livecast.schemas import BroadcastVisibility
from livecast.services.platform import BroadcastMeta, StreamConfig
from livecast.services.resilience import RetryPolicy

DEFAULT_DESCRIPTION = "Live stream broadcast"


class BroadcastCreateParams(BaseModel):
    """Operator input for a new broadcast."""

    title: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    visibility: BroadcastVisibility = BroadcastVisibility.PUBLIC
    scheduled_start: datetime | None = None

    @field_validator("title", "description")
    @classmethod
    def _blank_as_missing(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def to_meta(self, now: datetime, *, auto_start: bool) -> BroadcastMeta:
        return BroadcastMeta(
            title=self.title or f"Live Broadcast - {now.isoformat(timespec='seconds')}",
            description=self.description or DEFAULT_DESCRIPTION,
            visibility=self.visibility,
            scheduled_start=self.scheduled_start or now,
            enable_auto_start=auto_start,
            enable_auto_stop=auto_start,
        )

    def to_stream_config(self, now: datetime) -> StreamConfig:
        return StreamConfig(title=f"{self.title or 'Live Stream'} - {now.isoformat(timespec='seconds')}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BroadcastSettings:
    poll_interval: float = 10.0
    max_poll_attempts: int = 30
    auto_start: bool = True
    default_ingest_url: str = "rtmp://a.rtmp.youtube.com/live2"
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy.api_call)
    statistics_policy: RetryPolicy = field(default_factory=RetryPolicy.analytics)

    @classmethod
    def from_app_config(cls, app_config: AppEnvironConfig) -> "BroadcastSettings":
        return cls(
            poll_interval=app_config.BROADCAST_POLL_INTERVAL_SECONDS,
            max_poll_attempts=app_config.BROADCAST_MAX_POLL_ATTEMPTS,
            auto_start=app_config.BROADCAST_AUTO_START,
            default_ingest_url=app_config.DEFAULT_INGEST_URL,
            retry_policy=RetryPolicy.from_app_config(app_config),
        )

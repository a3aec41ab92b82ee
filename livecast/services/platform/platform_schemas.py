from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict

from livecast.schemas import BroadcastVisibility


class BroadcastMeta(BaseModel):
    """Metadata for a new platform broadcast (``liveBroadcasts.insert``)."""

    title: str
    description: str = ""
    visibility: BroadcastVisibility = BroadcastVisibility.PUBLIC
    scheduled_start: datetime
    enable_auto_start: bool = True
    enable_auto_stop: bool = True
    made_for_kids: bool = False

    def to_request_body(self) -> dict:
        # Platform requires an end time; broadcasts are capped at four hours
        scheduled_end = self.scheduled_start + timedelta(hours=4)
        return {
            "snippet": {
                "title": self.title,
                "description": self.description,
                "scheduledStartTime": self.scheduled_start.isoformat(),
                "scheduledEndTime": scheduled_end.isoformat(),
            },
            "status": {
                "privacyStatus": self.visibility.value,
                "selfDeclaredMadeForKids": self.made_for_kids,
            },
            "contentDetails": {
                "enableAutoStart": self.enable_auto_start,
                "enableAutoStop": self.enable_auto_stop,
            },
        }


class StreamConfig(BaseModel):
    """Ingest stream settings (``liveStreams.insert``)."""

    title: str
    resolution: str = "720p"
    frame_rate: str = "30fps"
    ingestion_type: Literal["rtmp"] = "rtmp"

    def to_request_body(self) -> dict:
        return {
            "snippet": {"title": self.title},
            "cdn": {
                "frameRate": self.frame_rate,
                "ingestionType": self.ingestion_type,
                "resolution": self.resolution,
            },
        }


class PlatformBroadcast(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    lifecycle_status: str | None = None
    auto_start: bool = False

    @classmethod
    def from_resource(cls, data: dict) -> "PlatformBroadcast":
        return cls(
            id=data["id"],
            lifecycle_status=(data.get("status") or {}).get("lifeCycleStatus"),
            auto_start=bool((data.get("contentDetails") or {}).get("enableAutoStart", False)),
        )


class PlatformStream(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    ingest_url: str | None = None
    ingest_key: str | None = None
    stream_status: str | None = None
    health_status: str | None = None

    @classmethod
    def from_resource(cls, data: dict) -> "PlatformStream":
        ingestion = (data.get("cdn") or {}).get("ingestionInfo") or {}
        status = data.get("status") or {}
        return cls(
            id=data["id"],
            ingest_url=ingestion.get("ingestionAddress"),
            ingest_key=ingestion.get("streamName"),
            stream_status=status.get("streamStatus"),
            health_status=(status.get("healthStatus") or {}).get("status"),
        )


class GoLiveCheck(BaseModel):
    """Result of one status poll that may also trigger the transition to live.

    ``can_retry`` is False when no amount of further polling can make the broadcast
    live (ended, revoked or deleted).
    """

    success: bool
    status: str | None = None
    can_retry: bool = True
    message: str | None = None


class BroadcastStatistics(BaseModel):
    concurrent_viewers: int = 0
    actual_start_time: datetime | None = None


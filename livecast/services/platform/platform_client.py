"""YouTube Live-compatible platform REST client.

Each method performs exactly one logical platform operation and raises on failure
(``httpx.HTTPStatusError`` / ``httpx.TransportError``); classification and retries are
the caller's job. With ``DEMO_MODE`` enabled every call is answered from an in-memory
stub and no network traffic happens.
"""

from __future__ import annotations

from typing import Protocol
from uuid import uuid4

import httpx
from loguru import logger

from livecast.app_config import AppEnvironConfig

from .platform_schemas import (
    BroadcastMeta,
    BroadcastStatistics,
    GoLiveCheck,
    PlatformBroadcast,
    PlatformStream,
    StreamConfig,
)

# Lifecycle states from which a broadcast can never become live again
_FINAL_LIFECYCLE_STATES = {"complete", "revoked"}


class PlatformBroadcastAPI(Protocol):
    """Platform operations the broadcast orchestrator depends on."""

    async def create_broadcast(self, meta: BroadcastMeta, *, access_token: str) -> PlatformBroadcast: ...

    async def create_stream(self, config: StreamConfig, *, access_token: str) -> PlatformStream: ...

    async def bind(self, broadcast_id: str, stream_id: str, *, access_token: str) -> None: ...

    async def check_and_go_live(self, broadcast_id: str, stream_id: str, *, access_token: str) -> GoLiveCheck: ...

    async def transition(self, broadcast_id: str, status: str, *, access_token: str) -> PlatformBroadcast: ...

    async def get_statistics(self, broadcast_id: str, *, access_token: str) -> BroadcastStatistics: ...


class PlatformClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        demo_mode: bool = False,
        demo_ingest_url: str = "rtmp://a.rtmp.youtube.com/live2",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.demo_mode = demo_mode
        self._demo_ingest_url = demo_ingest_url
        self._transport = transport
        # DEMO_MODE bookkeeping: broadcast id -> lifecycle status
        self._demo_broadcasts: dict[str, str] = {}

    @classmethod
    def from_app_config(cls, app_config: AppEnvironConfig) -> "PlatformClient":
        return cls(
            app_config.PLATFORM_API_BASE_URL,
            timeout=app_config.PLATFORM_API_TIMEOUT_SECONDS,
            demo_mode=app_config.DEMO_MODE,
            demo_ingest_url=app_config.DEFAULT_INGEST_URL,
        )

    def _build_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._build_headers(access_token),
            )
            response.raise_for_status()
            if not response.content:
                return {}
            data = response.json()
            logger.debug(f"{method} {path} response: {data}")
            return data

    async def create_broadcast(self, meta: BroadcastMeta, *, access_token: str) -> PlatformBroadcast:
        if self.demo_mode:
            broadcast_id = f"demo_broadcast_{uuid4().hex[:8]}"
            self._demo_broadcasts[broadcast_id] = "created"
            logger.info(f"Platform DEMO_MODE=true: stubbed broadcast {broadcast_id}")
            return PlatformBroadcast(
                id=broadcast_id, lifecycle_status="created", auto_start=meta.enable_auto_start
            )

        data = await self._request(
            "POST",
            "liveBroadcasts",
            access_token=access_token,
            params={"part": "snippet,status,contentDetails"},
            json=meta.to_request_body(),
        )
        return PlatformBroadcast.from_resource(data)

    async def create_stream(self, config: StreamConfig, *, access_token: str) -> PlatformStream:
        if self.demo_mode:
            stream_id = f"demo_stream_{uuid4().hex[:8]}"
            logger.info(f"Platform DEMO_MODE=true: stubbed stream {stream_id}")
            return PlatformStream(
                id=stream_id,
                ingest_url=self._demo_ingest_url,
                ingest_key=f"demo-key-{uuid4().hex[:12]}",
                stream_status="ready",
            )

        data = await self._request(
            "POST",
            "liveStreams",
            access_token=access_token,
            params={"part": "snippet,cdn,status"},
            json=config.to_request_body(),
        )
        return PlatformStream.from_resource(data)

    async def bind(self, broadcast_id: str, stream_id: str, *, access_token: str) -> None:
        if self.demo_mode:
            self._demo_broadcasts[broadcast_id] = "ready"
            logger.info(f"Platform DEMO_MODE=true: stubbed bind {broadcast_id} <- {stream_id}")
            return

        await self._request(
            "POST",
            "liveBroadcasts/bind",
            access_token=access_token,
            params={"id": broadcast_id, "streamId": stream_id, "part": "id,contentDetails"},
        )

    async def transition(self, broadcast_id: str, status: str, *, access_token: str) -> PlatformBroadcast:
        """Ask the platform to move the broadcast to ``status`` (testing, live, complete)."""
        if self.demo_mode:
            self._demo_broadcasts[broadcast_id] = status
            logger.info(f"Platform DEMO_MODE=true: stubbed transition {broadcast_id} -> {status}")
            return PlatformBroadcast(id=broadcast_id, lifecycle_status=status)

        data = await self._request(
            "POST",
            "liveBroadcasts/transition",
            access_token=access_token,
            params={"id": broadcast_id, "broadcastStatus": status, "part": "status"},
        )
        return PlatformBroadcast.from_resource(data)

    async def get_broadcast(self, broadcast_id: str, *, access_token: str) -> PlatformBroadcast | None:
        if self.demo_mode:
            status = self._demo_broadcasts.get(broadcast_id)
            if status is None:
                return None
            return PlatformBroadcast(id=broadcast_id, lifecycle_status=status)

        data = await self._request(
            "GET",
            "liveBroadcasts",
            access_token=access_token,
            params={"id": broadcast_id, "part": "status,contentDetails"},
        )
        items = data.get("items") or []
        return PlatformBroadcast.from_resource(items[0]) if items else None

    async def get_stream(self, stream_id: str, *, access_token: str) -> PlatformStream | None:
        if self.demo_mode:
            # The demo transport always pushes media once started
            return PlatformStream(id=stream_id, stream_status="active", health_status="good")

        data = await self._request(
            "GET",
            "liveStreams",
            access_token=access_token,
            params={"id": stream_id, "part": "status,cdn"},
        )
        items = data.get("items") or []
        return PlatformStream.from_resource(items[0]) if items else None

    async def check_and_go_live(self, broadcast_id: str, stream_id: str, *, access_token: str) -> GoLiveCheck:
        """Read broadcast and stream status and transition to live once media is flowing."""
        broadcast = await self.get_broadcast(broadcast_id, access_token=access_token)
        if broadcast is None:
            return GoLiveCheck(success=False, can_retry=False, message="Broadcast not found")

        lifecycle = broadcast.lifecycle_status
        if lifecycle == "live":
            return GoLiveCheck(success=True, status="live", message="Broadcast is currently live")
        if lifecycle == "testing":
            return GoLiveCheck(success=True, status="testing", message="Broadcast is in testing")
        if lifecycle in _FINAL_LIFECYCLE_STATES:
            message = "Broadcast has ended" if lifecycle == "complete" else f"Broadcast status: {lifecycle}"
            return GoLiveCheck(success=False, status=lifecycle, can_retry=False, message=message)
        if lifecycle not in ("ready", "created"):
            # liveStarting / testStarting: the platform is mid-transition
            return GoLiveCheck(success=False, status=lifecycle, message=f"Broadcast status: {lifecycle}")

        stream = await self.get_stream(stream_id, access_token=access_token)
        if stream is None:
            return GoLiveCheck(
                success=False,
                status=lifecycle,
                message="Broadcast is ready, but stream details unavailable",
            )
        if stream.stream_status == "inactive":
            return GoLiveCheck(
                success=False,
                status=lifecycle,
                message="Stream is inactive. Please start streaming video to the RTMP endpoint",
            )
        if stream.stream_status != "active":
            return GoLiveCheck(
                success=False, status=lifecycle, message=f"Stream status: {stream.stream_status}"
            )

        transitioned = await self.transition(broadcast_id, "live", access_token=access_token)
        status = transitioned.lifecycle_status or "liveStarting"
        logger.info(f"Broadcast {broadcast_id} transition requested, platform status={status}")
        return GoLiveCheck(
            success=status == "live",
            status=status,
            message="Broadcast transitioned to live" if status == "live" else f"Broadcast status: {status}",
        )

    async def get_statistics(self, broadcast_id: str, *, access_token: str) -> BroadcastStatistics:
        if self.demo_mode:
            return BroadcastStatistics(concurrent_viewers=0)

        data = await self._request(
            "GET",
            "videos",
            access_token=access_token,
            params={"id": broadcast_id, "part": "liveStreamingDetails"},
        )
        items = data.get("items") or []
        if not items:
            return BroadcastStatistics()
        details = items[0].get("liveStreamingDetails") or {}
        return BroadcastStatistics(
            concurrent_viewers=int(details.get("concurrentViewers") or 0),
            actual_start_time=details.get("actualStartTime"),
        )

"""Unit tests for PlatformClient against a mocked HTTP transport."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from livecast.schemas import BroadcastVisibility
from livecast.services.platform import BroadcastMeta, PlatformClient, StreamConfig

BASE_URL = "https://platform.test/v3"


class PlatformStub:
    """Routes requests by method and path and records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response | list[httpx.Response]] = {}

    def on(self, method: str, path: str, *responses: httpx.Response) -> None:
        self.routes[(method, path)] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path.removeprefix("/v3/"))
        responses = self.routes.get(key)
        if not responses:
            return httpx.Response(404, json={"error": {"code": 404, "message": "no route"}})
        return responses.pop(0) if len(responses) > 1 else responses[0]

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path.removeprefix('/v3/')}" for r in self.requests]


def _broadcast(status: str, broadcast_id: str = "bc1") -> dict:
    return {"id": broadcast_id, "status": {"lifeCycleStatus": status}, "contentDetails": {}}


def _stream(status: str, stream_id: str = "st1") -> dict:
    return {"id": stream_id, "status": {"streamStatus": status, "healthStatus": {"status": "good"}}}


@pytest.fixture
def stub() -> PlatformStub:
    return PlatformStub()


@pytest.fixture
def client(stub) -> PlatformClient:
    return PlatformClient(BASE_URL, transport=httpx.MockTransport(stub))


class TestCreate:
    async def test_create_broadcast_request(self, client, stub):
        # Arrange
        stub.on(
            "POST",
            "liveBroadcasts",
            httpx.Response(
                200,
                json={
                    "id": "bc1",
                    "status": {"lifeCycleStatus": "created"},
                    "contentDetails": {"enableAutoStart": True},
                },
            ),
        )
        start = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        meta = BroadcastMeta(
            title="Friday show", visibility=BroadcastVisibility.UNLISTED, scheduled_start=start
        )

        # Act
        broadcast = await client.create_broadcast(meta, access_token="tok")

        # Assert
        assert broadcast.id == "bc1"
        assert broadcast.lifecycle_status == "created"
        assert broadcast.auto_start is True

        request = stub.requests[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["part"] == "snippet,status,contentDetails"
        body = json.loads(request.content)
        assert body["snippet"]["title"] == "Friday show"
        assert body["snippet"]["scheduledEndTime"] == "2026-01-01T16:00:00+00:00"
        assert body["status"]["privacyStatus"] == "unlisted"
        assert body["contentDetails"]["enableAutoStart"] is True

    async def test_create_stream_reads_ingestion_info(self, client, stub):
        stub.on(
            "POST",
            "liveStreams",
            httpx.Response(
                200,
                json={
                    "id": "st1",
                    "cdn": {"ingestionInfo": {"ingestionAddress": "rtmp://ingest/live2", "streamName": "key-1"}},
                    "status": {"streamStatus": "ready"},
                },
            ),
        )

        stream = await client.create_stream(StreamConfig(title="Stream"), access_token="tok")

        assert (stream.id, stream.ingest_url, stream.ingest_key) == ("st1", "rtmp://ingest/live2", "key-1")
        assert stub.requests[0].url.params["part"] == "snippet,cdn,status"
        assert json.loads(stub.requests[0].content)["cdn"]["resolution"] == "720p"

    async def test_bind_sends_ids(self, client, stub):
        stub.on("POST", "liveBroadcasts/bind", httpx.Response(200, json={"id": "bc1"}))

        await client.bind("bc1", "st1", access_token="tok")

        params = stub.requests[0].url.params
        assert (params["id"], params["streamId"]) == ("bc1", "st1")

    async def test_http_error_raises(self, client, stub):
        stub.on("POST", "liveBroadcasts", httpx.Response(500, json={"error": {"message": "backend"}}))
        meta = BroadcastMeta(title="t", scheduled_start=datetime.now(timezone.utc))

        with pytest.raises(httpx.HTTPStatusError):
            await client.create_broadcast(meta, access_token="tok")


class TestCheckAndGoLive:
    """Tests for the single poll step that may request the live transition."""

    async def test_broadcast_missing_is_final(self, client, stub):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": []}))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert check.success is False
        assert check.can_retry is False

    async def test_already_live(self, client, stub):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast("live")]}))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert (check.success, check.status) == (True, "live")
        assert stub.paths() == ["GET liveBroadcasts"]

    async def test_testing_reports_success(self, client, stub):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast("testing")]}))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert (check.success, check.status) == (True, "testing")

    @pytest.mark.parametrize("lifecycle", ["complete", "revoked"])
    async def test_final_lifecycle_cannot_retry(self, client, stub, lifecycle):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast(lifecycle)]}))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert check.success is False
        assert check.can_retry is False

    async def test_inactive_stream_keeps_waiting(self, client, stub):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast("ready")]}))
        stub.on("GET", "liveStreams", httpx.Response(200, json={"items": [_stream("inactive")]}))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert check.success is False
        assert check.can_retry is True
        assert "Stream is inactive" in check.message
        assert "POST liveBroadcasts/transition" not in stub.paths()

    async def test_active_stream_triggers_transition(self, client, stub):
        # Arrange
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast("ready")]}))
        stub.on("GET", "liveStreams", httpx.Response(200, json={"items": [_stream("active")]}))
        stub.on("POST", "liveBroadcasts/transition", httpx.Response(200, json=_broadcast("live")))

        # Act
        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        # Assert
        assert (check.success, check.status) == (True, "live")
        transition = stub.requests[-1]
        assert transition.url.params["broadcastStatus"] == "live"

    async def test_transition_in_progress_is_not_success(self, client, stub):
        stub.on("GET", "liveBroadcasts", httpx.Response(200, json={"items": [_broadcast("ready")]}))
        stub.on("GET", "liveStreams", httpx.Response(200, json={"items": [_stream("active")]}))
        stub.on("POST", "liveBroadcasts/transition", httpx.Response(200, json=_broadcast("liveStarting")))

        check = await client.check_and_go_live("bc1", "st1", access_token="tok")

        assert check.success is False
        assert check.can_retry is True
        assert check.status == "liveStarting"


class TestStatistics:
    async def test_parses_concurrent_viewers(self, client, stub):
        stub.on(
            "GET",
            "videos",
            httpx.Response(
                200,
                json={"items": [{"liveStreamingDetails": {"concurrentViewers": "17"}}]},
            ),
        )

        stats = await client.get_statistics("bc1", access_token="tok")

        assert stats.concurrent_viewers == 17

    async def test_no_items_means_zero(self, client, stub):
        stub.on("GET", "videos", httpx.Response(200, json={"items": []}))

        stats = await client.get_statistics("bc1", access_token="tok")

        assert stats.concurrent_viewers == 0


class TestDemoMode:
    """DEMO_MODE answers from memory and never touches the transport."""

    async def test_full_lifecycle_without_network(self, stub):
        client = PlatformClient(
            BASE_URL, demo_mode=True, demo_ingest_url="rtmp://demo/live", transport=httpx.MockTransport(stub)
        )
        meta = BroadcastMeta(title="demo", scheduled_start=datetime.now(timezone.utc))

        broadcast = await client.create_broadcast(meta, access_token="x")
        stream = await client.create_stream(StreamConfig(title="demo"), access_token="x")
        await client.bind(broadcast.id, stream.id, access_token="x")
        check = await client.check_and_go_live(broadcast.id, stream.id, access_token="x")
        ended = await client.transition(broadcast.id, "complete", access_token="x")

        assert stream.ingest_url == "rtmp://demo/live"
        assert stream.ingest_key
        assert (check.success, check.status) == (True, "live")
        assert ended.lifecycle_status == "complete"
        assert stub.requests == []

"""
Mock implementation of the streaming platform REST routes.

This FastAPI app exposes pared-down versions of the YouTube Live-compatible routes
the platform client calls, so the service can run end to end locally:

* POST /liveBroadcasts
* POST /liveStreams
* POST /liveBroadcasts/bind
* POST /liveBroadcasts/transition
* GET  /liveBroadcasts
* GET  /liveStreams
* GET  /videos
* POST /token (OAuth refresh-token grant)

A bound stream turns "active" after MOCK_STREAM_ACTIVE_AFTER_POLLS stream status reads,
which lets the orchestrator exercise its polling loop.

Run with granian:
    granian --interface ASGI --host 127.0.0.1 --port 18082 tools.mock_platform_api:app

Then set DEMO_MODE=false, PLATFORM_API_BASE_URL=http://127.0.0.1:18082 and
PLATFORM_ACCESS_TOKEN=anything (e.g. in env.local).
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from urllib.parse import parse_qs

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

STREAM_ACTIVE_AFTER_POLLS = int(os.environ.get("MOCK_STREAM_ACTIVE_AFTER_POLLS", "2"))

app = FastAPI(title="platform-api mock", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_broadcasts: dict[str, dict] = {}
_streams: dict[str, dict] = {}


def _require_bearer(authorization: str | None) -> None:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail={"error": {"code": 401, "message": "Login Required"}})


def _not_found(kind: str, resource_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": {"code": 404, "message": f"{kind} {resource_id} not found"}},
    )


@app.get("/health")
async def health():
    """Health check endpoint for container orchestration."""
    return {"status": "ok", "service": "mock-platform-api"}


@app.post("/liveBroadcasts")
async def insert_broadcast(request: Request, authorization: str | None = Header(None)):
    _require_bearer(authorization)
    body = await request.json()
    print("=== POST /liveBroadcasts ===")
    print(f"Request body: {body}")
    print("=" * 40)

    broadcast_id = f"mock_bc_{uuid.uuid4().hex[:10]}"
    _broadcasts[broadcast_id] = {
        "id": broadcast_id,
        "snippet": body.get("snippet", {}),
        "status": {
            "lifeCycleStatus": "created",
            "privacyStatus": (body.get("status") or {}).get("privacyStatus", "public"),
        },
        "contentDetails": body.get("contentDetails", {}),
        "boundStreamId": None,
        "concurrentViewers": 0,
    }
    return _broadcasts[broadcast_id]


@app.post("/liveStreams")
async def insert_stream(request: Request, authorization: str | None = Header(None)):
    _require_bearer(authorization)
    body = await request.json()
    print("=== POST /liveStreams ===")
    print(f"Request body: {body}")
    print("=" * 40)

    stream_id = f"mock_st_{uuid.uuid4().hex[:10]}"
    _streams[stream_id] = {
        "id": stream_id,
        "snippet": body.get("snippet", {}),
        "cdn": {
            **(body.get("cdn") or {}),
            "ingestionInfo": {
                "ingestionAddress": "rtmp://127.0.0.1:1935/live2",
                "streamName": f"mock-key-{uuid.uuid4().hex[:12]}",
            },
        },
        "status": {"streamStatus": "ready", "healthStatus": {"status": "noData"}},
        "reads": 0,
    }
    return {key: value for key, value in _streams[stream_id].items() if key != "reads"}


@app.post("/liveBroadcasts/bind")
async def bind_broadcast(
    id: str = Query(...),
    streamId: str = Query(...),
    authorization: str | None = Header(None),
):
    _require_bearer(authorization)
    broadcast = _broadcasts.get(id)
    if broadcast is None:
        raise _not_found("Broadcast", id)
    if streamId not in _streams:
        raise _not_found("Stream", streamId)
    broadcast["boundStreamId"] = streamId
    broadcast["status"]["lifeCycleStatus"] = "ready"
    _streams[streamId]["status"]["streamStatus"] = "inactive"
    return {"id": id, "contentDetails": {"boundStreamId": streamId}}


@app.post("/liveBroadcasts/transition")
async def transition_broadcast(
    id: str = Query(...),
    broadcastStatus: str = Query(...),
    authorization: str | None = Header(None),
):
    _require_bearer(authorization)
    broadcast = _broadcasts.get(id)
    if broadcast is None:
        raise _not_found("Broadcast", id)

    current = broadcast["status"]["lifeCycleStatus"]
    if current == broadcastStatus:
        raise HTTPException(
            status_code=403,
            detail={"error": {"code": 403, "message": "redundantTransition"}},
        )
    if broadcastStatus not in ("testing", "live", "complete"):
        raise HTTPException(status_code=400, detail={"error": {"code": 400, "message": "invalidTransition"}})

    print(f"=== transition {id}: {current} -> {broadcastStatus} ===")
    broadcast["status"]["lifeCycleStatus"] = broadcastStatus
    if broadcastStatus == "live":
        broadcast["actualStartTime"] = datetime.now(timezone.utc).isoformat()
        broadcast["concurrentViewers"] = 1
    return {"id": id, "status": broadcast["status"]}


@app.get("/liveBroadcasts")
async def list_broadcasts(id: str = Query(...), authorization: str | None = Header(None)):
    _require_bearer(authorization)
    broadcast = _broadcasts.get(id)
    items = [] if broadcast is None else [{k: v for k, v in broadcast.items() if k != "concurrentViewers"}]
    return {"kind": "youtube#liveBroadcastListResponse", "items": items}


@app.get("/liveStreams")
async def list_streams(id: str = Query(...), authorization: str | None = Header(None)):
    _require_bearer(authorization)
    stream = _streams.get(id)
    if stream is None:
        return {"kind": "youtube#liveStreamListResponse", "items": []}

    stream["reads"] += 1
    if stream["status"]["streamStatus"] == "inactive" and stream["reads"] >= STREAM_ACTIVE_AFTER_POLLS:
        stream["status"] = {"streamStatus": "active", "healthStatus": {"status": "good"}}
    return {
        "kind": "youtube#liveStreamListResponse",
        "items": [{key: value for key, value in stream.items() if key != "reads"}],
    }


@app.get("/videos")
async def list_videos(id: str = Query(...), authorization: str | None = Header(None)):
    _require_bearer(authorization)
    broadcast = _broadcasts.get(id)
    if broadcast is None:
        return {"items": []}
    return {
        "items": [
            {
                "id": id,
                "liveStreamingDetails": {
                    "actualStartTime": broadcast.get("actualStartTime"),
                    "concurrentViewers": str(broadcast["concurrentViewers"]),
                },
            }
        ]
    }


@app.post("/token")
async def token(request: Request):
    """Mock OAuth token endpoint (refresh-token grant only)."""
    form = parse_qs((await request.body()).decode())
    if form.get("grant_type") != ["refresh_token"] or not form.get("refresh_token"):
        raise HTTPException(status_code=400, detail={"error": "unsupported_grant_type"})
    return {
        "access_token": f"mock-access-{uuid.uuid4().hex[:16]}",
        "expires_in": 3600,
        "token_type": "Bearer",
    }

"""Smoke tests for the assembled FastAPI application in DEMO_MODE."""

from fastapi.testclient import TestClient

from livecast.main import app, build_granian_kwargs


class TestApp:
    def test_health(self):
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["status"] == "OK"
        assert results["demo_mode"] is True
        assert results["open_breakers"] == []

    def test_status_in_demo_mode(self):
        with TestClient(app) as client:
            response = client.get("/v1/live/status")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["is_live"] is False
        assert results["stream"]["state"] == "idle"

    def test_stop_live_with_nothing_running_is_conflict(self):
        with TestClient(app) as client:
            response = client.post("/v1/live/stop_live")

        assert response.status_code == 409
        assert response.json()["errcode"] == "E_INVALID_STATE"

    def test_granian_kwargs(self):
        kwargs = build_granian_kwargs()

        assert kwargs["interface"] == "asgi"
        assert kwargs["workers"] >= 1

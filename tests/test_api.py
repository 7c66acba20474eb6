"""Tests for the FastAPI routes."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.server import create_app
from src.dashboard.client import ListingOfflineError
from src.dashboard.controller import RefreshController, RefreshState
from src.health.cache import MemoryCache
from src.health.engine import HealthAggregator, ProbeResult, Status, run_cache_probe, run_database_probe
from src.notifications import NotificationCenter

APP_INFO = {"name": "User Admin", "environment": "testing", "debug": True, "version": "1.0.0"}


def _broken_cache() -> MagicMock:
    cache = MagicMock()
    cache.set.side_effect = ConnectionError("Connection refused")
    return cache


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def dashboard_client(app, listing_client: MagicMock, now: datetime) -> TestClient:
    """App wired with a scripted listing client and a fixed clock (lifespan not run)."""
    notifications = NotificationCenter(duration=5, clock=lambda: now)
    app.state.notifications = notifications
    app.state.refresh_controller = RefreshController(
        listing_client, retry_backoff=0, on_error=notifications.notify, clock=lambda: now,
    )
    return TestClient(app)


class TestHealthEndpoint:
    def test_all_up_returns_200(self, app, db_path: Path, memory_cache: MemoryCache) -> None:
        app.state.health_aggregator = HealthAggregator(
            {
                "database": lambda: run_database_probe(str(db_path)),
                "cache": lambda: run_cache_probe(memory_cache, "__health_check__"),
            },
            APP_INFO,
        )
        resp = TestClient(app).get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["services"]["database"] == {"status": "up", "message": "Database connection successful"}
        assert data["services"]["cache"] == {"status": "up", "message": "Cache is working"}
        assert data["application"] == APP_INFO
        datetime.fromisoformat(data["timestamp"])

    def test_cache_down_returns_503(self, app, db_path: Path) -> None:
        cache = _broken_cache()
        app.state.health_aggregator = HealthAggregator(
            {
                "database": lambda: run_database_probe(str(db_path)),
                "cache": lambda: run_cache_probe(cache, "__health_check__"),
            },
            APP_INFO,
        )
        resp = TestClient(app).get("/api/health")
        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "unhealthy"
        assert data["services"]["cache"]["status"] == "down"
        assert data["services"]["cache"]["message"] == "Cache check failed: Connection refused"
        assert data["services"]["database"]["status"] == "up"

    def test_report_is_not_cached(self, app) -> None:
        results = iter([Status.UP, Status.DOWN])
        app.state.health_aggregator = HealthAggregator(
            {"database": lambda: ProbeResult(name="", status=next(results))}, APP_INFO,
        )
        client = TestClient(app)
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/health").status_code == 503


class TestDashboardEndpoints:
    def test_initial_state(self, dashboard_client: TestClient) -> None:
        resp = dashboard_client.get("/api/dashboard")
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "idle"
        assert data["snapshot"] is None
        assert data["stale"] is True

    def test_refresh_success(
        self, dashboard_client: TestClient, listing_client: MagicMock, scenario_records: list[dict[str, Any]],
    ) -> None:
        listing_client.fetch_users.return_value = {"data": scenario_records}
        resp = dashboard_client.post("/api/dashboard/refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert data["accepted"] is True
        assert data["state"] == "success"
        assert data["stale"] is False
        snap = data["snapshot"]
        assert snap["total_users"] == 8
        assert snap["bucket_counts"] == {"today": 2, "this_week": 4, "this_month": 6}
        assert [u["name"] for u in snap["recent_users"]] == ["A", "B", "C", "D", "E"]

        assert dashboard_client.get("/api/dashboard").json()["snapshot"] == snap

    def test_refresh_failure_sets_notification(
        self, dashboard_client: TestClient, listing_client: MagicMock, scenario_records: list[dict[str, Any]],
    ) -> None:
        listing_client.fetch_users.return_value = {"data": scenario_records}
        dashboard_client.post("/api/dashboard/refresh")

        listing_client.fetch_users.side_effect = ListingOfflineError("Network error. Please check your connection.")
        data = dashboard_client.post("/api/dashboard/refresh").json()
        assert data["state"] == "error"
        assert data["error"] == "Network error. Please check your connection."
        assert data["snapshot"]["total_users"] == 8

        note = dashboard_client.get("/api/dashboard/notification").json()["notification"]
        assert note["message"] == "Network error. Please check your connection."
        assert note["level"] == "error"

    def test_refresh_dropped_while_loading(self, app, dashboard_client: TestClient, listing_client: MagicMock) -> None:
        app.state.refresh_controller.state.state = RefreshState.LOADING
        data = dashboard_client.post("/api/dashboard/refresh").json()
        assert data["accepted"] is False
        assert data["state"] == "loading"
        listing_client.fetch_users.assert_not_called()

    def test_no_notification(self, dashboard_client: TestClient) -> None:
        assert dashboard_client.get("/api/dashboard/notification").json() == {"notification": None}

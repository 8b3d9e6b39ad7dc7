import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from api import routes_cron  # noqa: E402
from config import settings  # noqa: E402
from main import app  # noqa: E402
from services.market_sync import SyncMarketsResult  # noqa: E402
from services.polymarket import PolymarketUnavailableError  # noqa: E402

CRON_SECRET = "cron-secret-value"
AUTH = {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture(autouse=True)
def _cron_settings(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")


@pytest.fixture
def sync_mock(monkeypatch):
    mock = AsyncMock(
        return_value=SyncMarketsResult(
            success=True, markets_added=6, markets_updated=4, errors=["pm-9: bad row"], duration_ms=812
        )
    )
    monkeypatch.setattr(routes_cron.market_sync_service, "sync", mock)
    return mock


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer wrong-secret"},
        {"Authorization": CRON_SECRET + "x"},
        {"Authorization": "Bearer "},
    ],
)
def test_sync_markets_rejects_bad_credentials(headers, sync_mock):
    response = TestClient(app).post("/api/cron/sync-markets", headers=headers)

    assert response.status_code == 401
    assert response.json() == {"detail": "Unauthorized"}
    sync_mock.assert_not_awaited()


def test_sync_markets_rejected_when_secret_unset(monkeypatch, sync_mock):
    monkeypatch.setattr(settings, "CRON_SECRET", "")

    response = TestClient(app).post("/api/cron/sync-markets", headers={"Authorization": "Bearer "})

    assert response.status_code == 401
    sync_mock.assert_not_awaited()


def test_sync_markets_returns_result(sync_mock):
    response = TestClient(app).post("/api/cron/sync-markets", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "markets_added": 6,
        "markets_updated": 4,
        "errors": ["pm-9: bad row"],
        "duration_ms": 812,
    }
    sync_mock.assert_awaited_once_with()


def test_sync_markets_upstream_failure_is_500(monkeypatch):
    monkeypatch.setattr(
        routes_cron.market_sync_service,
        "sync",
        AsyncMock(side_effect=PolymarketUnavailableError("Gamma API unreachable")),
    )

    response = TestClient(app).post("/api/cron/sync-markets", headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"detail": "Gamma API unreachable"}


def test_sync_markets_hides_error_detail_in_production(monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(
        routes_cron.market_sync_service, "sync", AsyncMock(side_effect=RuntimeError("sqlite path /srv/x.db"))
    )

    response = TestClient(app).post("/api/cron/sync-markets", headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_maintenance_route(monkeypatch):
    run = AsyncMock(return_value={"logs_deleted": 12, "timestamp": "2026-10-19T00:00:00Z", "duration_ms": 5})
    monkeypatch.setattr(routes_cron.maintenance_service, "run_maintenance", run)

    client = TestClient(app)
    assert client.post("/api/cron/maintenance").status_code == 401

    response = client.post("/api/cron/maintenance", headers=AUTH)
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "logs_deleted": 12,
        "timestamp": "2026-10-19T00:00:00Z",
        "duration_ms": 5,
    }
    run.assert_awaited_once()

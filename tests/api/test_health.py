from __future__ import annotations

from fastapi.testclient import TestClient

from teachme.main import app


class _UnreachableDatabase:
    async def ping(self) -> bool:
        return False


def test_info(client: TestClient) -> None:
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "TeachMe.ai Backend API",
        "version": "1.0.0",
        "status": "running",
        "database": "in_memory",
    }


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests, DATABASE_URL is empty: in-memory stores are in use
    assert data["checks"]["database"] == "in_memory"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_health_degraded_when_database_unreachable(client: TestClient) -> None:
    app.state.database = _UnreachableDatabase()
    resp = client.get("/health")
    # Liveness stays 200; only the status field reports the problem
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["database"] == "unreachable"


def test_ready_503_when_database_unreachable(client: TestClient) -> None:
    app.state.database = _UnreachableDatabase()
    resp = client.get("/ready")
    assert resp.status_code == 503

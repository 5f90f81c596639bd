from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests, Redis and the database are not configured
    assert data["checks"]["redis"] == "not_configured"
    assert data["checks"]["database"] == "not_configured"


def test_health_reports_in_memory_identity(client: TestClient) -> None:
    data = client.get("/health").json()
    assert data["checks"]["identity"] == "in_memory"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200

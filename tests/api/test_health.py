from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["checks"]["store"] == "ok"
    # In tests no DATABASE_URL is configured
    assert data["checks"]["database"] == "not_configured"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_health_needs_no_token(client: TestClient) -> None:
    resp = client.get("/health", headers={"Authorization": "Bearer junk"})
    assert resp.status_code == 200

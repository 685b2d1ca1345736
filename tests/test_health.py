"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 with the success envelope and database "connected"
  - no authentication required
  - 503 UNAVAILABLE when the database does not answer
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from auth.models import ActorKind


def test_health_returns_200(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Server is healthy"
    assert body["data"]["database"] == "connected"
    assert body["data"]["uptime"] >= 0
    assert "timestamp" in body["meta"]


def test_health_no_auth_required(client):
    client.cookies.clear()
    assert client.get("/health", headers={}).status_code == 200


def test_health_database_down(client, monkeypatch):
    def down():
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    monkeypatch.setattr(client.app.state.directories[ActorKind.USER], "ping", down)
    resp = client.get("/health")
    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "error"
    assert body["message"] == "Database connection failed"
    assert "reason" not in body

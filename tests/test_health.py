"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - database and mail components report on the wired store and dispatcher
  - No authentication required
"""

from __future__ import annotations

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from api.main import VERSION


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"] == {"app": "ok", "database": "ok", "mail": "ok"}


def test_health_no_auth_required(api_client):
    client, _ = api_client
    client.cookies.clear()
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_health_degraded_when_database_down(api_client):
    client, _ = api_client
    store = client.app.state.user_store
    with patch.object(store, "ping", side_effect=OperationalError("SELECT 1", {}, Exception("gone"))):
        data = client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"

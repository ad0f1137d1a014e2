"""Tests for the healthcheck endpoint."""

from __future__ import annotations


def test_health_endpoint_returns_ok(client):
    """The healthcheck endpoint should report a reachable database."""

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": "ok"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    body = response.get_json()
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"


def test_wrong_method_uses_error_envelope(client):
    response = client.patch("/api/health")

    assert response.status_code == 405
    assert response.get_json()["code"] == "METHOD_NOT_ALLOWED"

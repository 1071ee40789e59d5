"""
Tests for health and version endpoints
"""
from fastapi import status


def test_health_check(client):
    response = client.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"


def test_version_reports_code_parameters(client):
    response = client.get("/api/v1/version")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["service"] == "storeclock-backend"
    assert data["totp_step_seconds"] == 30
    assert data["qr_safety_margin_seconds"] == 10
    assert "version" in data
    assert "env" in data


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    data = response.json()
    assert data["error"] is True
    assert data["status_code"] == 404
    assert data["path"] == "/api/v1/does-not-exist"

"""Tests for main API endpoints."""

from fastapi.testclient import TestClient

from src.vahire.config import settings
from src.vahire.main import app
from src.vahire.services.auth.dependencies import set_auth_gate


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_api_prefix() -> None:
    """Test that API prefix is configured correctly."""
    assert settings.api_v1_prefix == "/api"


def test_error_details_shown_outside_production(client: TestClient, make_external_token) -> None:
    token = make_external_token(aud="https://wrong.example")

    response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert "details" in response.json()


def test_error_details_hidden_in_production(
    client: TestClient, make_external_token, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "environment", "production")
    token = make_external_token(aud="https://wrong.example")

    response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "message": "Invalid or expired token"}


def test_auth_gate_not_initialized_is_server_error() -> None:
    set_auth_gate(None)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/auth/profile", headers={"Authorization": "Bearer x.y.z"})

    assert response.status_code == 500


def test_openapi_publishes_token_schemes() -> None:
    """Test the bearer header and token query schemes appear in the OpenAPI document."""
    schemes = app.openapi()["components"]["securitySchemes"]

    assert schemes["HTTPBearer"] == {"type": "http", "scheme": "bearer"}
    assert schemes["APIKeyQuery"] == {"type": "apiKey", "in": "query", "name": "token"}

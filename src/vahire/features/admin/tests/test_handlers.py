"""Tests for admin API handlers."""

import pytest
from fastapi.testclient import TestClient

from src.vahire.services.database.models import UserRole, UserStatus


@pytest.fixture
def admin_headers(local_tokens, local_admin) -> dict[str, str]:
    return {"Authorization": f"Bearer {local_tokens.issue_token(local_admin.id)}"}


@pytest.fixture
def user_headers(local_tokens, local_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {local_tokens.issue_token(local_user.id)}"}


def test_list_users_requires_token(client: TestClient) -> None:
    response = client.get("/api/admin/users")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "message": "No token provided"}


def test_list_users_forbidden_for_regular_user(client: TestClient, user_headers) -> None:
    """Test a valid token without the admin role gets 403, not 401."""
    response = client.get("/api/admin/users", headers=user_headers)

    assert response.status_code == 403
    assert response.json() == {
        "error": "Forbidden",
        "message": "Access denied: Administrator privileges required",
    }


def test_list_users_as_local_admin(client: TestClient, admin_headers, local_user) -> None:
    response = client.get("/api/admin/users", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert {u["email"] for u in data["users"]} == {"ada.admin@example.com", "sam.local@example.com"}
    assert data["limit"] == 50
    assert all("password_hash" not in u for u in data["users"])


def test_list_users_as_auth0_admin(client: TestClient, make_external_token, user_store) -> None:
    user_store.add(
        email="jane.doe@example.com", auth0_id="google-oauth2|1234567890", role=UserRole.ADMIN
    )

    response = client.get(
        "/api/admin/users", headers={"Authorization": f"Bearer {make_external_token()}"}
    )

    assert response.status_code == 200


def test_first_time_auth0_user_is_not_admin(client: TestClient, make_external_token) -> None:
    response = client.get(
        "/api/admin/users", headers={"Authorization": f"Bearer {make_external_token()}"}
    )

    assert response.status_code == 403


def test_ban_and_unban_user(client: TestClient, admin_headers, local_user, user_store) -> None:
    ban = client.put(
        f"/api/admin/ban-user/{local_user.id}", headers=admin_headers, json={"reason": "Spam"}
    )
    assert ban.status_code == 200
    assert ban.json()["message"] == "User banned successfully"
    banned = user_store.records[local_user.id]
    assert banned.status == UserStatus.BANNED
    assert banned.ban_reason == "Spam"
    assert banned.banned_at is not None

    unban = client.put(f"/api/admin/unban-user/{local_user.id}", headers=admin_headers)
    assert unban.status_code == 200
    assert user_store.records[local_user.id].status == UserStatus.ACTIVE
    assert user_store.records[local_user.id].ban_reason is None


def test_ban_without_body_uses_default_reason(
    client: TestClient, admin_headers, local_user, user_store
) -> None:
    response = client.put(f"/api/admin/ban-user/{local_user.id}", headers=admin_headers)

    assert response.status_code == 200
    assert user_store.records[local_user.id].ban_reason == "Violation of terms of service"


def test_banned_user_token_still_authenticates_but_cannot_log_in(
    client: TestClient, admin_headers, local_user
) -> None:
    client.put(f"/api/admin/ban-user/{local_user.id}", headers=admin_headers)

    response = client.post(
        "/api/auth/login", json={"email": local_user.email, "password": "s3cret-pass"}
    )

    assert response.status_code == 403


def test_update_status(client: TestClient, admin_headers, local_user) -> None:
    response = client.put(
        f"/api/admin/users/{local_user.id}/status",
        headers=admin_headers,
        json={"status": "suspended", "reason": "Chargeback under review"},
    )

    assert response.status_code == 200
    assert response.json()["user"]["status"] == "suspended"


def test_admin_cannot_ban_self(client: TestClient, admin_headers, local_admin) -> None:
    response = client.put(f"/api/admin/ban-user/{local_admin.id}", headers=admin_headers)

    assert response.status_code == 400


def test_admin_cannot_unban_self(client: TestClient, admin_headers, local_admin) -> None:
    response = client.put(f"/api/admin/unban-user/{local_admin.id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Administrators cannot change their own account status"


def test_ban_unknown_user(client: TestClient, admin_headers) -> None:
    response = client.put("/api/admin/ban-user/665f1c2e9b1d8c0012ab34cd", headers=admin_headers)

    assert response.status_code == 404


def test_regular_user_cannot_ban(client: TestClient, user_headers, local_admin) -> None:
    response = client.put(f"/api/admin/ban-user/{local_admin.id}", headers=user_headers)

    assert response.status_code == 403

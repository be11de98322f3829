# tests/v1/test_auth.py
"""Tests for authentication endpoints."""

from fastapi import status


def _register(client, **overrides):
    body = {
        "username": "carol",
        "email": "Carol@Example.com",
        "password": "hunter22",
        "display_name": "Carol",
    }
    body.update(overrides)
    return client.post("/api/v1/auth/register", json=body)


def test_register_returns_token_and_account(client) -> None:
    response = _register(client)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["success"] is True
    assert data["token_type"] == "bearer"
    assert data["token"]
    assert data["user"]["username"] == "carol"
    assert data["user"]["email"] == "carol@example.com"
    assert "password_hash" not in data["user"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == status.HTTP_200_OK
    assert me.json()["user"]["id"] == data["user"]["id"]


def test_register_duplicate_email_or_username(client, test_user) -> None:
    by_email = _register(client, email="ALICE@example.com")
    by_username = _register(client, username="Alice", email="new@example.com")

    for response in (by_email, by_username):
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == {"code": "USER_EXISTS", "category": "conflict"}


def test_register_validation(client) -> None:
    response = _register(client, username="no spaces!", password="123")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 400
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {detail["field"] for detail in body["details"]}
    assert {"body.username", "body.password"} <= fields


def test_login(client, test_user, password) -> None:
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "Alice@Example.com", "password": password},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["user"]["username"] == "alice"
    assert data["user"]["last_active_at"] is not None


def test_login_wrong_password_and_unknown_email(client, test_user, password) -> None:
    wrong = client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "nope"}
    )
    unknown = client.post(
        "/api/v1/auth/login", json={"email": "ghost@example.com", "password": password}
    )

    for response in (wrong, unknown):
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_logout_revokes_token(client, auth_headers, token_blacklist) -> None:
    response = client.post("/api/v1/auth/logout", headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert len(token_blacklist.revoked) == 1

    again = client.get("/api/v1/auth/me", headers=auth_headers)
    assert again.status_code == status.HTTP_401_UNAUTHORIZED
    assert again.json()["error"]["code"] == "TOKEN_REVOKED"

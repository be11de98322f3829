# tests/v1/test_notifications.py
"""Tests for the notification inbox endpoints."""

from fastapi import status

INBOX = "/api/v1/notifications"


def test_inbox_flow(client, test_post, other_auth_headers, auth_headers) -> None:
    client.post(f"/api/v1/posts/{test_post.id}/like", headers=other_auth_headers)
    client.post(
        f"/api/v1/posts/{test_post.id}/comments",
        json={"content": "great"},
        headers=other_auth_headers,
    )

    inbox = client.get(INBOX, headers=auth_headers).json()
    assert [n["type"] for n in inbox["notifications"]] == ["comment", "like"]
    first = inbox["notifications"][0]
    assert first["actor"]["username"] == "bob"
    assert first["post_id"] == test_post.id
    assert first["time_ago"] == "Just now"
    assert first["is_read"] is False

    assert client.get(f"{INBOX}/unread-count", headers=auth_headers).json()["count"] == 2

    read = client.post(f"{INBOX}/{first['id']}/read", headers=auth_headers)
    assert read.status_code == status.HTTP_200_OK
    assert read.json()["notification"]["is_read"] is True

    all_read = client.post(f"{INBOX}/read-all", headers=auth_headers).json()
    assert all_read["count"] == 1
    assert client.get(f"{INBOX}/unread-count", headers=auth_headers).json()["count"] == 0


def test_cannot_read_someone_elses_notification(
    client, test_post, auth_headers, other_auth_headers
) -> None:
    client.post(f"/api/v1/posts/{test_post.id}/like", headers=other_auth_headers)
    note_id = client.get(INBOX, headers=auth_headers).json()["notifications"][0]["id"]

    response = client.post(f"{INBOX}/{note_id}/read", headers=other_auth_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"


def test_inbox_requires_auth(client) -> None:
    assert client.get(INBOX).status_code == status.HTTP_401_UNAUTHORIZED

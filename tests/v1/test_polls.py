# tests/v1/test_polls.py
"""Tests for poll read and vote endpoints."""

import pytest
from fastapi import status

from murmur_stage.schemas.poll import PollCreate


@pytest.fixture()
def poll_post(make_post, test_user):
    return make_post(
        test_user,
        "Best season?",
        poll=PollCreate(question="Pick one", options=["Spring", "Autumn"]),
    )


def _vote(client, headers, poll, option):
    return client.post(
        "/api/v1/polls/vote",
        json={"poll_id": poll["id"], "option_id": option["id"]},
        headers=headers,
    )


def test_read_vote_and_reject_second_vote(
    client, poll_post, other_auth_headers, auth_headers
) -> None:
    poll = client.get(f"/api/v1/posts/{poll_post.id}/polls").json()["poll"]
    spring, autumn = poll["options"]

    voted = _vote(client, other_auth_headers, poll, autumn)

    assert voted.status_code == status.HTTP_200_OK
    view = voted.json()["poll"]
    assert view["total_votes"] == 1
    assert view["viewer_option_id"] == autumn["id"]
    assert [o["percentage"] for o in view["options"]] == [0.0, 100.0]

    again = _vote(client, other_auth_headers, poll, spring)
    assert again.status_code == status.HTTP_403_FORBIDDEN
    assert again.json()["error"]["code"] == "ALREADY_VOTED"

    as_author = client.get(f"/api/v1/posts/{poll_post.id}/polls", headers=auth_headers).json()
    assert as_author["poll"]["viewer_option_id"] is None
    assert as_author["poll"]["total_votes"] == 1


def test_vote_requires_auth(client, poll_post) -> None:
    response = client.post("/api/v1/polls/vote", json={"poll_id": 1, "option_id": 1})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_unknown_poll(client, auth_headers) -> None:
    response = client.post(
        "/api/v1/polls/vote", json={"poll_id": 999, "option_id": 1}, headers=auth_headers
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "POLL_NOT_FOUND"


def test_post_without_poll(client, test_post) -> None:
    response = client.get(f"/api/v1/posts/{test_post.id}/polls")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "POLL_NOT_FOUND"


def test_two_voters_split_the_poll(client, poll_post, make_user, bearer_for) -> None:
    first, second = bearer_for(make_user()), bearer_for(make_user())
    poll = client.get(f"/api/v1/posts/{poll_post.id}/polls").json()["poll"]
    spring, autumn = poll["options"]

    def tallies() -> list[int]:
        current = client.get(f"/api/v1/posts/{poll_post.id}/polls").json()["poll"]
        return [o["vote_count"] for o in current["options"]]

    assert _vote(client, first, poll, spring).status_code == status.HTTP_200_OK
    assert tallies() == [1, 0]

    assert _vote(client, first, poll, autumn).status_code == status.HTTP_403_FORBIDDEN
    assert tallies() == [1, 0]

    assert _vote(client, second, poll, autumn).status_code == status.HTTP_200_OK
    assert tallies() == [1, 1]

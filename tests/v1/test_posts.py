# tests/v1/test_posts.py
"""Tests for post, feed, search and analytics endpoints."""

import json
from datetime import UTC, datetime, timedelta

from fastapi import status

from murmur_stage.services.realtime import NEW_FEED, POST_DELETED

POSTS = "/api/v1/posts"


def _create(client, headers, **form):
    files = form.pop("files", None)
    return client.post(POSTS, data=form, files=files, headers=headers)


class TestCreatePost:
    def test_text_post(self, client, auth_headers, event_bus) -> None:
        response = _create(
            client, auth_headers, content="Hello #Python and #python @bob", location=" Berlin "
        )

        assert response.status_code == status.HTTP_201_CREATED
        post = response.json()["post"]
        assert post["content"] == "Hello #Python and #python @bob"
        assert post["content_type"] == "text"
        assert post["hashtags"] == ["python"]
        assert post["mentions"] == ["bob"]
        assert post["location"] == "Berlin"
        assert post["author"]["username"] == "alice"
        assert post["like_count"] == post["retweet_count"] == post["comment_count"] == 0
        assert event_bus.names() == [NEW_FEED]

    def test_requires_authentication(self, client) -> None:
        response = _create(client, {}, content="hi")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_empty_post(self, client, auth_headers) -> None:
        response = _create(client, auth_headers, content="   ")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "EMPTY_POST"

    def test_too_long(self, client, auth_headers) -> None:
        response = _create(client, auth_headers, content="x" * 2001)

        assert response.json()["error"]["code"] == "CONTENT_TOO_LONG"

    def test_media_upload(self, client, auth_headers, blob_store) -> None:
        response = _create(
            client,
            auth_headers,
            files=[
                ("media", ("cat.png", b"\x89PNG-bytes", "image/png")),
                ("media", ("dog.jpg", b"\xff\xd8-bytes", "image/jpeg")),
            ],
        )

        assert response.status_code == status.HTTP_201_CREATED
        post = response.json()["post"]
        assert post["content"] is None
        assert post["content_type"] == "image"
        assert len(post["media_urls"]) == 2
        assert all(url.startswith("https://media.test/images/posts/") for url in post["media_urls"])
        assert sorted(blob_store.uploads.values()) == [b"\x89PNG-bytes", b"\xff\xd8-bytes"]

    def test_unsupported_media(self, client, auth_headers, blob_store) -> None:
        response = _create(
            client,
            auth_headers,
            content="see attachment",
            files=[("media", ("doc.pdf", b"%PDF", "application/pdf"))],
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"
        assert blob_store.uploads == {}

    def test_with_poll(self, client, auth_headers) -> None:
        poll = {"question": "Tabs or spaces?", "options": ["Tabs", "Spaces"]}

        response = _create(client, auth_headers, content="Settle this", poll=json.dumps(poll))

        assert response.status_code == status.HTTP_201_CREATED
        view = response.json()["post"]["poll"]
        assert view["question"] == "Tabs or spaces?"
        assert [o["option_text"] for o in view["options"]] == ["Tabs", "Spaces"]

    def test_invalid_poll(self, client, auth_headers) -> None:
        poll = {"question": "Only one?", "options": ["Yes"]}

        response = _create(client, auth_headers, content="Broken poll", poll=json.dumps(poll))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["error"]["code"] == "INVALID_POLL"
        assert body["details"]


class TestReadAndDelete:
    def test_get_post(self, client, test_post, other_auth_headers) -> None:
        client.post(f"{POSTS}/{test_post.id}/like", headers=other_auth_headers)

        response = client.get(f"{POSTS}/{test_post.id}", headers=other_auth_headers)

        assert response.status_code == status.HTTP_200_OK
        post = response.json()["post"]
        assert post["hashtags"] == ["testing"]
        assert post["like_count"] == 1
        assert post["liked_by_viewer"] is True

    def test_missing_post(self, client) -> None:
        response = client.get(f"{POSTS}/424242")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == {"code": "POST_NOT_FOUND", "category": "not_found"}

    def test_delete_own_post(self, client, test_post, auth_headers, event_bus) -> None:
        response = client.delete(f"{POSTS}/{test_post.id}", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert event_bus.names()[-1] == POST_DELETED
        assert client.get(f"{POSTS}/{test_post.id}").status_code == status.HTTP_404_NOT_FOUND
        again = client.delete(f"{POSTS}/{test_post.id}", headers=auth_headers)
        assert again.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_someone_elses_post(self, client, test_post, other_auth_headers) -> None:
        response = client.delete(f"{POSTS}/{test_post.id}", headers=other_auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["code"] == "NOT_POST_OWNER"


class TestFeeds:
    def test_live_feed_pages(self, client, test_user, make_post) -> None:
        base = datetime(2024, 6, 1, tzinfo=UTC)
        for i in range(5):
            make_post(test_user, f"post {i}", created_at=base + timedelta(minutes=i))

        first = client.get(f"{POSTS}/live-feeds", params={"limit": 3}).json()
        second = client.get(
            f"{POSTS}/live-feeds", params={"limit": 3, "cursor": first["next_cursor"]}
        ).json()

        assert first["has_more"] is True
        assert second["has_more"] is False
        assert second["next_cursor"] is None
        contents = [item["post"]["content"] for item in first["items"] + second["items"]]
        assert contents == ["post 4", "post 3", "post 2", "post 1", "post 0"]

    def test_following_feed_requires_auth(self, client) -> None:
        assert client.get(f"{POSTS}/feed").status_code == status.HTTP_401_UNAUTHORIZED

    def test_following_feed(
        self, client, test_user, other_user, make_user, make_post, follow, auth_headers
    ) -> None:
        follow(test_user, other_user)
        make_post(other_user, "from bob")
        make_post(make_user("carol"), "from carol")

        items = client.get(f"{POSTS}/feed", headers=auth_headers).json()["items"]

        assert [item["post"]["content"] for item in items] == ["from bob"]

    def test_malformed_cursor_is_lenient(self, client, test_post) -> None:
        response = client.get(f"{POSTS}/live-feeds", params={"cursor": "%%%"})

        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()["items"]) == 1


class TestSearchAndTrending:
    def test_search_orders_by_engagement(
        self, client, test_user, other_user, make_post, other_auth_headers
    ) -> None:
        quiet = make_post(test_user, "quiet #garden post")
        loud = make_post(test_user, "loud #garden post")
        client.post(f"{POSTS}/{loud.id}/like", headers=other_auth_headers)

        body = client.get(f"{POSTS}/search", params={"q": "#garden"}).json()

        assert body["count"] == 2
        assert [p["id"] for p in body["posts"]] == [loud.id, quiet.id]

    def test_search_by_author_and_content_type(self, client, test_user, make_post) -> None:
        make_post(test_user, "something")

        by_author = client.get(f"{POSTS}/search", params={"q": "ALI"}).json()
        images = client.get(f"{POSTS}/search", params={"content_type": "image"}).json()
        bad = client.get(f"{POSTS}/search", params={"content_type": "audio"})

        assert by_author["count"] == 1
        assert images["count"] == 0
        assert bad.json()["error"]["code"] == "INVALID_CONTENT_TYPE"

    def test_search_wildcards_match_literally(self, client, test_user, make_post) -> None:
        sure = make_post(test_user, "100% sure")
        make_post(test_user, "plain words")
        make_post(test_user, "snake_case names")

        percent = client.get(f"{POSTS}/search", params={"q": "%"}).json()
        underscore = client.get(f"{POSTS}/search", params={"q": "e_c"}).json()
        neither = client.get(f"{POSTS}/search", params={"q": "n_m"}).json()

        assert [p["id"] for p in percent["posts"]] == [sure.id]
        assert underscore["count"] == 1
        assert neither["count"] == 0

    def test_trending_hashtags(self, client, test_user, other_user, make_post) -> None:
        make_post(test_user, "#rust is fun")
        make_post(other_user, "learning #Rust and #go")
        make_post(test_user, "more #go")
        make_post(test_user, "old #cobol", created_at=datetime(2020, 1, 1, tzinfo=UTC))

        body = client.get(f"{POSTS}/trending/hashtags", params={"hours": 1000}).json()

        assert body["hours"] == 168
        tags = {h["tag"]: (h["count"], h["unique_users"]) for h in body["hashtags"]}
        assert tags == {"rust": (2, 2), "go": (2, 2)}


class TestAnalytics:
    def test_author_sees_analytics(
        self, client, test_post, auth_headers, other_auth_headers, other_user, follow, test_user
    ) -> None:
        follow(other_user, test_user)
        client.post(f"{POSTS}/{test_post.id}/like", headers=other_auth_headers)
        client.post(f"{POSTS}/{test_post.id}/retweet", headers=other_auth_headers)

        body = client.get(f"{POSTS}/{test_post.id}/analytics", headers=auth_headers).json()

        analytics = body["analytics"]
        assert analytics["total_engagement"] == 2
        assert analytics["unique_likers"] == 1
        assert analytics["likes_last_24h"] == 1
        assert analytics["follower_count"] == 1
        assert analytics["engagement_rate"] == 200.0

    def test_others_are_forbidden(self, client, test_post, other_auth_headers) -> None:
        response = client.get(f"{POSTS}/{test_post.id}/analytics", headers=other_auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

# tests/test_engagement.py
"""Likes, retweets and comments keep their counters consistent."""

import pytest
from sqlalchemy import func, select

from murmur_stage.core.errors import NotFound, ValidationFailed
from murmur_stage.models import Comment, Like, Notification, Post, Retweet
from murmur_stage.services import engagement
from murmur_stage.services.engagement import (
    add_comment,
    list_comments,
    recount_post_counters,
    toggle_like,
    toggle_retweet,
)
from murmur_stage.services.posts import delete_post
from murmur_stage.services.realtime import COMMENT_ADDED, LIKE_UPDATED, RETWEET_UPDATED


def _rows(db, model, post_id):
    return db.execute(
        select(func.count()).select_from(model).where(model.post_id == post_id)
    ).scalar_one()


def _notifications(db, kind):
    return db.execute(select(Notification).where(Notification.type == kind)).scalars().all()


class TestLikes:
    def test_like_then_unlike(self, db_session, test_post, other_user):
        liked = toggle_like(db_session, test_post.id, other_user)
        unliked = toggle_like(db_session, test_post.id, other_user)

        assert (liked.active, liked.count) == (True, 1)
        assert (unliked.active, unliked.count) == (False, 0)
        assert _rows(db_session, Like, test_post.id) == 0

    def test_counter_matches_rows_for_many_users(self, db_session, test_post, make_user):
        for _ in range(4):
            toggle_like(db_session, test_post.id, make_user())

        post = db_session.get(Post, test_post.id)
        assert post.like_count == 4 == _rows(db_session, Like, test_post.id)

    def test_like_notifies_author_once(self, db_session, test_post, other_user):
        toggle_like(db_session, test_post.id, other_user)
        toggle_like(db_session, test_post.id, other_user)

        notes = _notifications(db_session, "like")
        assert len(notes) == 1
        assert notes[0].recipient_id == test_post.user_id
        assert notes[0].message == "bob liked your post"

    def test_liking_own_post_does_not_notify(self, db_session, test_post, test_user):
        toggle_like(db_session, test_post.id, test_user)

        assert _notifications(db_session, "like") == []

    def test_publishes_like_updated(self, db_session, test_post, other_user, event_bus):
        toggle_like(db_session, test_post.id, other_user, events=event_bus)

        name, payload = event_bus.events[-1]
        assert name == LIKE_UPDATED
        assert payload == {
            "postId": test_post.id,
            "likeCount": 1,
            "userId": other_user.id,
            "liked": True,
        }

    def test_missing_and_deleted_posts(self, db_session, test_post, test_user, other_user):
        with pytest.raises(NotFound):
            toggle_like(db_session, 999_999, other_user)

        delete_post(db_session, test_post.id, test_user)
        with pytest.raises(NotFound) as excinfo:
            toggle_like(db_session, test_post.id, other_user)
        assert excinfo.value.code == "POST_NOT_FOUND"

    def test_concurrent_duplicate_settles_as_active(
        self, db_session, test_post, other_user, monkeypatch
    ):
        toggle_like(db_session, test_post.id, other_user)
        # A racing request that missed the first insert tries to insert again.
        monkeypatch.setattr(engagement, "_existing_row", lambda *args: None)

        result = toggle_like(db_session, test_post.id, other_user)

        assert (result.active, result.count) == (True, 1)
        assert _rows(db_session, Like, test_post.id) == 1


class TestRetweets:
    def test_retweet_with_comment_then_undo(self, db_session, test_post, other_user, event_bus):
        done = toggle_retweet(db_session, test_post.id, other_user, "  so true  ", events=event_bus)
        retweet = db_session.execute(select(Retweet)).scalars().one()
        assert retweet.comment == "so true"
        assert retweet.order_index > test_post.order_index

        undone = toggle_retweet(db_session, test_post.id, other_user, events=event_bus)

        assert (done.active, done.count) == (True, 1)
        assert (undone.active, undone.count) == (False, 0)
        assert event_bus.names() == [RETWEET_UPDATED, RETWEET_UPDATED]
        assert [payload["retweeted"] for _, payload in event_bus.events] == [True, False]

    def test_comment_too_long_is_rejected_before_writing(self, db_session, test_post, other_user):
        with pytest.raises(ValidationFailed) as excinfo:
            toggle_retweet(db_session, test_post.id, other_user, "x" * 281)

        assert excinfo.value.code == "COMMENT_TOO_LONG"
        assert _rows(db_session, Retweet, test_post.id) == 0

    def test_retweet_notifies_author(self, db_session, test_post, other_user):
        toggle_retweet(db_session, test_post.id, other_user)

        assert len(_notifications(db_session, "retweet")) == 1

    def test_concurrent_duplicate_settles_as_active(
        self, db_session, test_post, other_user, monkeypatch
    ):
        toggle_retweet(db_session, test_post.id, other_user)
        monkeypatch.setattr(engagement, "_existing_row", lambda *args: None)

        result = toggle_retweet(db_session, test_post.id, other_user)

        assert (result.active, result.count) == (True, 1)
        assert _rows(db_session, Retweet, test_post.id) == 1


class TestComments:
    def test_add_comment(self, db_session, test_post, other_user, event_bus):
        result = add_comment(db_session, test_post.id, other_user, "  Nice post!  ", events=event_bus)

        assert result.comment.content == "Nice post!"
        assert result.comment.author.username == "bob"
        assert result.comment_count == 1
        assert event_bus.names() == [COMMENT_ADDED]
        assert event_bus.events[0][1]["commentCount"] == 1
        assert len(_notifications(db_session, "comment")) == 1

    @pytest.mark.parametrize(
        ("content", "code"),
        [("", "EMPTY_COMMENT"), ("   ", "EMPTY_COMMENT"), ("x" * 1001, "COMMENT_TOO_LONG")],
    )
    def test_rejects_bad_content(self, db_session, test_post, other_user, content, code):
        with pytest.raises(ValidationFailed) as excinfo:
            add_comment(db_session, test_post.id, other_user, content)

        assert excinfo.value.code == code
        assert _rows(db_session, Comment, test_post.id) == 0

    def test_list_comments_pages_newest_first(self, db_session, test_post, other_user):
        for i in range(5):
            add_comment(db_session, test_post.id, other_user, f"comment {i}")

        first = list_comments(db_session, test_post.id, limit=3)
        second = list_comments(db_session, test_post.id, limit=3, cursor=first.next_cursor)

        contents = [c.content for c in first.comments + second.comments]
        assert contents == [f"comment {i}" for i in range(4, -1, -1)]
        assert first.has_more and not second.has_more
        assert second.next_cursor is None

    def test_list_comments_on_deleted_post(self, db_session, test_post, test_user):
        delete_post(db_session, test_post.id, test_user)

        with pytest.raises(NotFound):
            list_comments(db_session, test_post.id)


def test_recount_repairs_drifted_counters(db_session, test_post, other_user):
    toggle_like(db_session, test_post.id, other_user)
    add_comment(db_session, test_post.id, other_user, "first")
    post = db_session.get(Post, test_post.id)
    post.like_count = 42
    post.comment_count = 0
    post.retweet_count = 7
    db_session.commit()

    repaired = recount_post_counters(db_session, test_post.id)

    assert (repaired.like_count, repaired.retweet_count, repaired.comment_count) == (1, 0, 1)

"""Turn post rows into viewer-specific API views in a fixed number of queries."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from murmur_stage.db.time import ensure_utc
from murmur_stage.models import Like, Post, Retweet, User
from murmur_stage.repositories.post_repo import PostRepository
from murmur_stage.schemas.post import PostView
from murmur_stage.schemas.user import UserSummary
from murmur_stage.services.polls import polls_for_posts


def load_users(db: Session, user_ids: set[int]) -> dict[int, User]:
    if not user_ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(user_ids))).scalars()
    return {user.id: user for user in users}


def build_post_views(
    db: Session,
    posts: Sequence[Post],
    viewer: User | None,
    *,
    authors: dict[int, User] | None = None,
) -> list[PostView]:
    """Annotate ``posts`` with author, hashtags, poll and viewer flags."""
    if not posts:
        return []
    post_ids = [post.id for post in posts]
    authors = dict(authors or {})
    missing = {post.user_id for post in posts} - authors.keys()
    authors.update(load_users(db, missing))

    liked: set[int] = set()
    retweeted: set[int] = set()
    if viewer is not None:
        liked = set(
            db.execute(
                select(Like.post_id).where(Like.user_id == viewer.id, Like.post_id.in_(post_ids))
            ).scalars()
        )
        retweeted = set(
            db.execute(
                select(Retweet.post_id).where(
                    Retweet.user_id == viewer.id, Retweet.post_id.in_(post_ids)
                )
            ).scalars()
        )

    hashtags = PostRepository(db).hashtags_for(post_ids)
    polls = polls_for_posts(db, post_ids, viewer)

    return [
        PostView(
            id=post.id,
            order_index=post.order_index,
            content=post.content,
            content_type=post.content_type,
            media_urls=list(post.media_urls or []),
            hashtags=hashtags.get(post.id, []),
            mentions=list(post.mentions or []),
            location=post.location,
            like_count=post.like_count,
            retweet_count=post.retweet_count,
            comment_count=post.comment_count,
            created_at=ensure_utc(post.created_at),
            author=UserSummary.model_validate(authors[post.user_id]),
            liked_by_viewer=post.id in liked,
            retweeted_by_viewer=post.id in retweeted,
            poll=polls.get(post.id),
        )
        for post in posts
    ]


def build_post_view(db: Session, post: Post, viewer: User | None) -> PostView:
    return build_post_views(db, [post], viewer)[0]

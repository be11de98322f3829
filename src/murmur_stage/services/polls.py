"""Poll creation, voting and read path.

One vote per user per poll is enforced by the ``(poll_id, user_id)`` unique
constraint; the pre-check only produces a friendlier error in the common case.
Option tallies are rebuilt from ``poll_vote`` rows inside the vote transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import Conflict, InternalError, NotFound, ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.db.time import ensure_utc, utcnow
from murmur_stage.models import Poll, PollOption, PollVote, Post, User
from murmur_stage.repositories.post_repo import PostRepository
from murmur_stage.schemas.poll import PollCreate, PollOptionView, PollView
from murmur_stage.services.realtime import POLL_UPDATED, EventPublisher

logger = logging.getLogger(__name__)


def _already_voted() -> Conflict:
    return Conflict(
        "You have already voted in this poll",
        code="ALREADY_VOTED",
        status_code=403,
    )


def is_expired(poll: Poll) -> bool:
    return poll.expires_at is not None and ensure_utc(poll.expires_at) <= utcnow()


def create_poll(db: Session, post: Post, poll_in: PollCreate) -> Poll:
    """Attach a poll to ``post`` inside the caller's transaction.

    Raises:
        ValidationFailed: If the options or expiry are unacceptable.
    """
    if len(poll_in.options) > settings.poll_max_options:
        raise ValidationFailed(
            f"A poll can have at most {settings.poll_max_options} options",
            code="INVALID_POLL",
        )
    if poll_in.expires_at is not None and ensure_utc(poll_in.expires_at) <= utcnow():
        raise ValidationFailed("Poll expiry must be in the future", code="INVALID_POLL")

    poll = Poll(post_id=post.id, question=poll_in.question, expires_at=poll_in.expires_at)
    db.add(poll)
    db.flush()
    for position, text in enumerate(poll_in.options):
        db.add(PollOption(poll_id=poll.id, option_text=text, position=position, vote_count=0))
    db.flush()
    return poll


def build_poll_views(
    db: Session,
    polls: Iterable[Poll],
    viewer: User | None,
) -> dict[int, PollView]:
    """Return poll views keyed by post id."""
    polls = list(polls)
    if not polls:
        return {}
    poll_ids = [poll.id for poll in polls]

    options_by_poll: dict[int, list[PollOption]] = {}
    for option in db.execute(
        select(PollOption)
        .where(PollOption.poll_id.in_(poll_ids))
        .order_by(PollOption.poll_id, PollOption.position)
    ).scalars():
        options_by_poll.setdefault(option.poll_id, []).append(option)

    chosen: dict[int, int] = {}
    if viewer is not None:
        chosen = dict(
            db.execute(
                select(PollVote.poll_id, PollVote.option_id).where(
                    PollVote.poll_id.in_(poll_ids), PollVote.user_id == viewer.id
                )
            ).tuples().all()
        )

    views: dict[int, PollView] = {}
    for poll in polls:
        options = options_by_poll.get(poll.id, [])
        total = sum(option.vote_count for option in options)
        views[poll.post_id] = PollView(
            id=poll.id,
            post_id=poll.post_id,
            question=poll.question,
            options=[
                PollOptionView(
                    id=option.id,
                    option_text=option.option_text,
                    vote_count=option.vote_count,
                    percentage=round(option.vote_count * 100 / total, 1) if total else 0.0,
                )
                for option in options
            ],
            total_votes=total,
            expires_at=ensure_utc(poll.expires_at) if poll.expires_at else None,
            expired=is_expired(poll),
            viewer_option_id=chosen.get(poll.id),
        )
    return views


def polls_for_posts(db: Session, post_ids: list[int], viewer: User | None) -> dict[int, PollView]:
    """Return poll views for whichever of ``post_ids`` carry a poll."""
    if not post_ids:
        return {}
    polls = db.execute(select(Poll).where(Poll.post_id.in_(post_ids))).scalars().all()
    return build_poll_views(db, polls, viewer)


def get_poll_by_post(db: Session, post_id: int, viewer: User | None = None) -> PollView:
    """Return the poll attached to ``post_id``.

    Raises:
        NotFound: If the post is missing, deleted or carries no poll.
    """
    post = PostRepository(db).get_including_deleted(post_id)
    if post is None or post.deleted:
        raise NotFound("Post not found", code="POST_NOT_FOUND")
    poll = db.execute(select(Poll).where(Poll.post_id == post_id)).scalars().first()
    if poll is None:
        raise NotFound("No poll found for this post", code="POLL_NOT_FOUND")
    return build_poll_views(db, [poll], viewer)[post_id]


def vote(
    db: Session,
    poll_id: int,
    option_id: int,
    user: User,
    *,
    events: EventPublisher | None = None,
) -> PollView:
    """Cast ``user``'s single vote in a poll.

    Raises:
        NotFound: If the poll is missing or its post was deleted.
        ValidationFailed: If the option is foreign to the poll or the poll expired.
        Conflict: With code ``ALREADY_VOTED`` (403) on a second vote.
        InternalError: If the datastore fails; nothing is written.
    """
    poll = db.get(Poll, poll_id)
    post = db.get(Post, poll.post_id) if poll is not None else None
    if poll is None or post is None or post.deleted:
        raise NotFound("Poll not found", code="POLL_NOT_FOUND")

    option = db.execute(
        select(PollOption).where(PollOption.id == option_id, PollOption.poll_id == poll.id)
    ).scalars().first()
    if option is None:
        raise ValidationFailed("Invalid option for this poll", code="INVALID_OPTION")
    if is_expired(poll):
        raise ValidationFailed("This poll has expired", code="POLL_EXPIRED")

    existing = db.execute(
        select(PollVote.id).where(PollVote.poll_id == poll.id, PollVote.user_id == user.id)
    ).first()
    if existing is not None:
        raise _already_voted()

    try:
        db.add(PollVote(poll_id=poll.id, option_id=option.id, user_id=user.id))
        db.flush()
        locked = db.execute(
            select(PollOption)
            .where(PollOption.id == option.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
        locked.vote_count = db.execute(
            select(func.count()).select_from(PollVote).where(PollVote.option_id == option.id)
        ).scalar_one()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _already_voted() from None
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Vote on poll %s failed: %s", poll_id, exc)
        raise InternalError("Could not record vote") from exc

    view = build_poll_views(db, [poll], user)[poll.post_id]
    if events is not None:
        events.publish(POLL_UPDATED, {"postId": poll.post_id, "poll": view.model_dump()})
    return view

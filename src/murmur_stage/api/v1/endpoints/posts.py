# src/murmur_stage/api/v1/endpoints/posts.py
"""Post, feed and engagement endpoints for the Murmur API."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Body, File, Form, Query, UploadFile, status
from pydantic import ValidationError

from murmur_stage.core.errors import ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.schemas.common import MessageResponse
from murmur_stage.schemas.poll import PollCreate, PollResponse
from murmur_stage.schemas.post import (
    AnalyticsResponse,
    CommentCreate,
    CommentPage,
    CommentResponse,
    FeedPage,
    PostResponse,
    PostSearchResponse,
    RetweetRequest,
    ToggleResponse,
    TrendingResponse,
)
from murmur_stage.services import engagement, polls
from murmur_stage.services import posts as post_service
from murmur_stage.services.feed import assemble_feed

from ..dependencies import BlobStoreDep, CurrentUserDep, EventsDep, OptionalUserDep, SessionDep

router = APIRouter(prefix="/posts", tags=["posts"])

CursorQuery = Annotated[str | None, Query(description="Opaque cursor from the previous page")]
LimitQuery = Annotated[int | None, Query(description="Page size, clamped server side")]


def _parse_poll(raw: str | None) -> PollCreate | None:
    if raw is None or not raw.strip():
        return None
    try:
        return PollCreate.model_validate_json(raw)
    except ValidationError as err:
        details = [
            {"field": ".".join(str(part) for part in e["loc"]), "message": e["msg"]}
            for e in err.errors()
        ]
        raise ValidationFailed("Invalid poll", code="INVALID_POLL", details=details) from err


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    current_user: CurrentUserDep,
    db: SessionDep,
    blob_store: BlobStoreDep,
    events: EventsDep,
    content: Annotated[str | None, Form()] = None,
    location: Annotated[str | None, Form()] = None,
    poll: Annotated[str | None, Form(description="Poll as JSON")] = None,
    media: Annotated[list[UploadFile] | None, File()] = None,
) -> PostResponse:
    """Create a new post.

    Args:
        current_user: Authenticated author
        db: Database session
        blob_store: Media storage
        events: Realtime event publisher
        content: Post text, may contain #hashtags and @mentions
        location: Optional location label
        poll: Optional poll definition encoded as JSON
        media: Optional image or video files

    Returns:
        The created post

    Raises:
        ApiError: 400 when neither content nor media is given or input is invalid
    """
    poll_in = _parse_poll(poll)
    uploads = [
        post_service.MediaUpload(
            data=upload.file.read(),
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
        )
        for upload in media or []
    ]
    view = post_service.create_post(
        db,
        current_user,
        content=content,
        location=location,
        poll=poll_in,
        media=uploads,
        blob_store=blob_store,
        events=events,
    )
    return PostResponse(message="Post created successfully", post=view)


@router.get("/live-feeds", response_model=FeedPage)
def live_feed(
    db: SessionDep,
    viewer: OptionalUserDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> FeedPage:
    """Return everyone's public posts and retweets, newest first."""
    page = assemble_feed(db, viewer=viewer, scope="live", cursor=cursor, limit=limit)
    return FeedPage(
        message="Live feed retrieved successfully",
        items=page.items,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/feed", response_model=FeedPage)
def following_feed(
    current_user: CurrentUserDep,
    db: SessionDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> FeedPage:
    """Return posts and retweets by the caller and the accounts they follow."""
    page = assemble_feed(db, viewer=current_user, scope="following", cursor=cursor, limit=limit)
    return FeedPage(
        message="Feed retrieved successfully",
        items=page.items,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/search", response_model=PostSearchResponse)
def search_posts(
    db: SessionDep,
    viewer: OptionalUserDep,
    q: str | None = None,
    content_type: str | None = None,
    from_date: datetime | None = None,
    limit: LimitQuery = None,
) -> PostSearchResponse:
    """Search public posts by content, hashtag or author, most engaged first."""
    found = post_service.search_posts(
        db, q, content_type=content_type, from_date=from_date, limit=limit, viewer=viewer
    )
    return PostSearchResponse(message="Posts retrieved successfully", posts=found, count=len(found))


@router.get("/trending/hashtags", response_model=TrendingResponse)
def trending_hashtags(
    db: SessionDep,
    limit: Annotated[int, Query(ge=1)] = 10,
    hours: Annotated[int, Query(ge=1)] = 24,
) -> TrendingResponse:
    """Return the most used hashtags within the last ``hours``."""
    tags = post_service.trending_hashtags(db, limit=limit, hours=hours)
    return TrendingResponse(
        message="Trending hashtags retrieved successfully",
        hashtags=tags,
        hours=min(hours, settings.trending_max_hours),
    )


@router.get("/{post_id}", response_model=PostResponse)
def get_post(post_id: int, db: SessionDep, viewer: OptionalUserDep) -> PostResponse:
    """Return a single live post."""
    return PostResponse(
        message="Post retrieved successfully",
        post=post_service.get_post(db, post_id, viewer),
    )


@router.delete("/{post_id}", response_model=MessageResponse)
def delete_post(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    events: EventsDep,
) -> MessageResponse:
    """Soft-delete one of the caller's posts.

    Raises:
        ApiError: 404 if missing or already deleted, 403 if not the author
    """
    post_service.delete_post(db, post_id, current_user, events=events)
    return MessageResponse(message="Post deleted successfully")


@router.post("/{post_id}/like", response_model=ToggleResponse)
def toggle_like(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    events: EventsDep,
) -> ToggleResponse:
    """Like the post, or remove the caller's like."""
    result = engagement.toggle_like(db, post_id, current_user, events=events)
    return ToggleResponse(
        message="Post liked" if result.active else "Post unliked",
        post_id=post_id,
        active=result.active,
        count=result.count,
    )


@router.post("/{post_id}/retweet", response_model=ToggleResponse)
def toggle_retweet(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    events: EventsDep,
    request: Annotated[RetweetRequest | None, Body()] = None,
) -> ToggleResponse:
    """Retweet the post, optionally with a comment, or undo the retweet."""
    result = engagement.toggle_retweet(
        db,
        post_id,
        current_user,
        request.comment if request else None,
        events=events,
    )
    return ToggleResponse(
        message="Post retweeted" if result.active else "Retweet removed",
        post_id=post_id,
        active=result.active,
        count=result.count,
    )


@router.get("/{post_id}/comments", response_model=CommentPage)
def list_comments(
    post_id: int,
    db: SessionDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> CommentPage:
    """Return the post's comments, newest first."""
    page = engagement.list_comments(db, post_id, cursor=cursor, limit=limit)
    return CommentPage(
        message="Comments retrieved successfully",
        comments=page.comments,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    post_id: int,
    request: CommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    events: EventsDep,
) -> CommentResponse:
    """Comment on a post."""
    result = engagement.add_comment(db, post_id, current_user, request.content, events=events)
    return CommentResponse(
        message="Comment added successfully",
        comment=result.comment,
        comment_count=result.comment_count,
    )


@router.get("/{post_id}/polls", response_model=PollResponse)
def get_post_poll(post_id: int, db: SessionDep, viewer: OptionalUserDep) -> PollResponse:
    """Return the poll attached to a post."""
    return PollResponse(
        message="Poll retrieved successfully",
        poll=polls.get_poll_by_post(db, post_id, viewer),
    )


@router.get("/{post_id}/analytics", response_model=AnalyticsResponse)
def post_analytics(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> AnalyticsResponse:
    """Return engagement analytics; only the author may call this."""
    return AnalyticsResponse(
        message="Post analytics retrieved successfully",
        analytics=post_service.post_analytics(db, post_id, current_user),
    )

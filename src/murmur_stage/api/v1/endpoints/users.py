# src/murmur_stage/api/v1/endpoints/users.py
"""User profile and follow endpoints for the Murmur API."""

from typing import Annotated

from fastapi import APIRouter, Query

from murmur_stage.schemas.user import (
    AccountResponse,
    FollowResponse,
    ProfileResponse,
    ProfileUpdate,
    UserListResponse,
)
from murmur_stage.services import users as user_service

from ..dependencies import CurrentUserDep, OptionalUserDep, SessionDep

router = APIRouter(prefix="/users", tags=["users"])

CursorQuery = Annotated[str | None, Query(description="Opaque cursor from the previous page")]
LimitQuery = Annotated[int | None, Query(description="Page size, clamped server side")]


@router.put("/profile", response_model=AccountResponse)
def update_profile(
    changes: ProfileUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> AccountResponse:
    """Update the caller's display name, bio, location or website."""
    user = user_service.update_profile(db, current_user, changes)
    return AccountResponse(
        message="Profile updated successfully",
        user=user_service.account_for(db, user),
    )


@router.get("/suggestions", response_model=UserListResponse)
def suggestions(
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: Annotated[int, Query()] = 10,
) -> UserListResponse:
    """Suggest accounts the caller does not follow yet."""
    return UserListResponse(
        message="Suggestions retrieved successfully",
        users=user_service.suggestions(db, current_user, limit=limit),
    )


@router.get("/search", response_model=UserListResponse)
def search_users(
    db: SessionDep,
    q: Annotated[str, Query(min_length=1)],
    limit: Annotated[int, Query()] = 20,
) -> UserListResponse:
    """Find users by username or display name."""
    return UserListResponse(
        message="Users retrieved successfully",
        users=user_service.search_users(db, q, limit=limit),
    )


@router.get("/{user_id}/profile", response_model=ProfileResponse)
def get_profile(user_id: int, db: SessionDep, viewer: OptionalUserDep) -> ProfileResponse:
    """Return a user's public profile with follower counts."""
    user = user_service.get_user(db, user_id)
    return ProfileResponse(
        message="Profile retrieved successfully",
        user=user_service.profile_for(db, user, viewer),
    )


@router.post("/{user_id}/follow", response_model=FollowResponse)
def follow(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> FollowResponse:
    """Follow a user.

    Raises:
        ApiError: 400 on self-follow or an existing follow, 404 unknown user
    """
    followers = user_service.follow_user(db, current_user, user_id)
    return FollowResponse(
        message="User followed successfully",
        following=True,
        followers_count=followers,
    )


@router.delete("/{user_id}/follow", response_model=FollowResponse)
def unfollow(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> FollowResponse:
    """Unfollow a user; a no-op when not following."""
    followers = user_service.unfollow_user(db, current_user, user_id)
    return FollowResponse(
        message="User unfollowed successfully",
        following=False,
        followers_count=followers,
    )


@router.get("/{user_id}/followers", response_model=UserListResponse)
def followers(
    user_id: int,
    db: SessionDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> UserListResponse:
    """Return who follows ``user_id``, most recent first."""
    page = user_service.list_followers(db, user_id, cursor=cursor, limit=limit)
    return UserListResponse(
        message="Followers retrieved successfully",
        users=page.users,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/{user_id}/following", response_model=UserListResponse)
def following(
    user_id: int,
    db: SessionDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> UserListResponse:
    """Return whom ``user_id`` follows, most recent first."""
    page = user_service.list_following(db, user_id, cursor=cursor, limit=limit)
    return UserListResponse(
        message="Following retrieved successfully",
        users=page.users,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )

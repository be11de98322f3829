# src/murmur_stage/api/v1/endpoints/search.py
"""Combined search endpoint for the Murmur API."""

from typing import Annotated

from fastapi import APIRouter, Query

from murmur_stage.schemas.search import SearchResponse
from murmur_stage.services.search import search

from ..dependencies import OptionalUserDep, SessionDep

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
def general_search(
    db: SessionDep,
    viewer: OptionalUserDep,
    q: str | None = None,
    limit: Annotated[int | None, Query()] = None,
    user_cursor: str | None = None,
    post_cursor: str | None = None,
) -> SearchResponse:
    """Search users and posts; without ``q`` both are browsed page by page."""
    result = search(
        db,
        q,
        limit=limit,
        user_cursor=user_cursor,
        post_cursor=post_cursor,
        viewer=viewer,
    )
    return SearchResponse(
        message="Search completed successfully",
        query=q,
        users=result.users,
        posts=result.posts,
        next_user_cursor=result.next_user_cursor,
        next_post_cursor=result.next_post_cursor,
    )

"""Combined search schemas."""

from .common import Envelope
from .post import PostView
from .user import UserSummary


class SearchResponse(Envelope):
    """Users and posts matching a query, or a browse page of each."""

    query: str | None = None
    users: list[UserSummary]
    posts: list[PostView]
    next_user_cursor: str | None = None
    next_post_cursor: str | None = None

"""Post, feed and engagement Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .common import Envelope
from .poll import PollView
from .user import UserSummary


class PostView(BaseModel):
    """Post as rendered for a particular viewer."""

    id: int
    order_index: int
    content: str | None = None
    content_type: str = "text"
    media_urls: list[Any] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    location: str | None = None
    like_count: int = 0
    retweet_count: int = 0
    comment_count: int = 0
    created_at: datetime
    author: UserSummary
    liked_by_viewer: bool = False
    retweeted_by_viewer: bool = False
    poll: PollView | None = None


class FeedItem(BaseModel):
    """One entry of a feed: an original post or a retweet of one."""

    kind: Literal["post", "retweet"]
    event_time: datetime
    order_index: int
    post: PostView
    retweeted_by: UserSummary | None = None
    retweet_comment: str | None = None


class FeedPage(Envelope):
    items: list[FeedItem]
    next_cursor: str | None = None
    has_more: bool = False


class PostResponse(Envelope):
    post: PostView


class ToggleResponse(Envelope):
    """Outcome of a like or retweet toggle."""

    post_id: int
    active: bool
    count: int


class RetweetRequest(BaseModel):
    comment: str | None = Field(None, max_length=280)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentView(BaseModel):
    id: int
    post_id: int
    content: str
    created_at: datetime
    author: UserSummary


class CommentResponse(Envelope):
    comment: CommentView
    comment_count: int


class CommentPage(Envelope):
    comments: list[CommentView]
    next_cursor: str | None = None
    has_more: bool = False


class PostSearchResponse(Envelope):
    posts: list[PostView]
    count: int


class TrendingHashtag(BaseModel):
    tag: str
    count: int
    unique_users: int


class TrendingResponse(Envelope):
    hashtags: list[TrendingHashtag]
    hours: int


class PostAnalytics(BaseModel):
    """Engagement figures visible to the post author."""

    post_id: int
    like_count: int
    retweet_count: int
    comment_count: int
    total_engagement: int
    unique_likers: int
    unique_retweeters: int
    likes_last_24h: int
    retweets_last_24h: int
    follower_count: int
    engagement_rate: float


class AnalyticsResponse(Envelope):
    analytics: PostAnalytics

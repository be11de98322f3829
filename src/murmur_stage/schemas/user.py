"""User, auth and follow Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .common import Envelope

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"


class RegisterRequest(BaseModel):
    """Schema for account registration."""

    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: str | None = Field(None, max_length=50)


class LoginRequest(BaseModel):
    """Schema for email + password login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    """Editable profile fields; omitted fields are left unchanged."""

    display_name: str | None = Field(None, max_length=50)
    bio: str | None = Field(None, max_length=160)
    location: str | None = Field(None, max_length=100)
    website: str | None = Field(None, max_length=255)


class UserSummary(BaseModel):
    """Compact author/actor representation embedded in other payloads."""

    id: int
    username: str
    display_name: str | None = None
    profile_picture: str | None = None
    is_verified: bool = False

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserSummary):
    """Public profile with follow counters."""

    bio: str | None = None
    location: str | None = None
    website: str | None = None
    created_at: datetime
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0
    is_following: bool | None = None


class AccountProfile(UserProfile):
    """Profile of the authenticated user, including private fields."""

    email: str
    last_active_at: datetime | None = None


class AuthResponse(Envelope):
    """Token issued on registration or login."""

    token: str
    token_type: str = "bearer"
    user: AccountProfile


class AccountResponse(Envelope):
    user: AccountProfile


class ProfileResponse(Envelope):
    user: UserProfile


class UserListResponse(Envelope):
    """Page of users, cursor paginated where applicable."""

    users: list[UserSummary]
    next_cursor: str | None = None
    has_more: bool = False


class FollowResponse(Envelope):
    following: bool
    followers_count: int

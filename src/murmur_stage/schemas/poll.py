"""Poll schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import Envelope

MAX_OPTION_LENGTH = 100


class PollCreate(BaseModel):
    """Poll submitted alongside a new post."""

    question: str = Field(..., min_length=1, max_length=280)
    options: list[str] = Field(..., min_length=2, max_length=10)
    expires_at: datetime | None = None

    @field_validator("question")
    @classmethod
    def _strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Poll question cannot be empty")
        return value

    @field_validator("options")
    @classmethod
    def _check_options(cls, value: list[str]) -> list[str]:
        cleaned = [option.strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("Poll options cannot be empty")
        if any(len(option) > MAX_OPTION_LENGTH for option in cleaned):
            raise ValueError(f"Poll options must be at most {MAX_OPTION_LENGTH} characters")
        if len({option.lower() for option in cleaned}) != len(cleaned):
            raise ValueError("Poll options must be distinct")
        return cleaned


class PollVoteRequest(BaseModel):
    poll_id: int
    option_id: int


class PollOptionView(BaseModel):
    id: int
    option_text: str
    vote_count: int
    percentage: float = 0.0


class PollView(BaseModel):
    """Poll state as seen by one viewer."""

    id: int
    post_id: int
    question: str
    options: list[PollOptionView]
    total_votes: int
    expires_at: datetime | None = None
    expired: bool = False
    viewer_option_id: int | None = None


class PollResponse(Envelope):
    poll: PollView

"""Shared response envelope schemas."""

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """Base for every successful response body."""

    success: bool = True
    message: str = Field(..., description="Human readable outcome")


class MessageResponse(Envelope):
    """Envelope with no payload."""


class CountResponse(Envelope):
    """Envelope carrying a single counter."""

    count: int

# src/murmur_stage/api/v1/endpoints/polls.py
"""Poll voting endpoint for the Murmur API."""

from fastapi import APIRouter

from murmur_stage.schemas.poll import PollResponse, PollVoteRequest
from murmur_stage.services import polls as poll_service

from ..dependencies import CurrentUserDep, EventsDep, SessionDep

router = APIRouter(prefix="/polls", tags=["polls"])


@router.post("/vote", response_model=PollResponse)
def vote(
    request: PollVoteRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    events: EventsDep,
) -> PollResponse:
    """Cast the caller's single vote in a poll.

    Args:
        request: Poll and option identifiers
        current_user: Authenticated voter
        db: Database session
        events: Realtime event publisher

    Returns:
        The poll with updated tallies

    Raises:
        ApiError: 404 unknown poll, 400 foreign option or expired poll,
            403 ``ALREADY_VOTED`` on a second vote
    """
    view = poll_service.vote(db, request.poll_id, request.option_id, current_user, events=events)
    return PollResponse(message="Vote recorded successfully", poll=view)

# tests/test_polls.py
"""Poll creation and single-vote enforcement."""

from datetime import timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from murmur_stage.core.errors import Conflict, NotFound, ValidationFailed
from murmur_stage.db.time import utcnow
from murmur_stage.models import Poll, PollOption, PollVote
from murmur_stage.schemas.poll import PollCreate
from murmur_stage.services.polls import get_poll_by_post, vote
from murmur_stage.services.posts import delete_post
from murmur_stage.services.realtime import POLL_UPDATED


@pytest.fixture()
def poll_post(make_post, test_user):
    return make_post(
        test_user,
        "Lunch?",
        poll=PollCreate(question="Where to?", options=["Tacos", "Ramen", "Salad"]),
    )


def _poll(db, post):
    return db.execute(select(Poll).where(Poll.post_id == post.id)).scalars().one()


def _options(db, poll):
    return db.execute(
        select(PollOption).where(PollOption.poll_id == poll.id).order_by(PollOption.position)
    ).scalars().all()


class TestPollCreate:
    def test_options_are_trimmed_and_kept_in_order(self, db_session, poll_post):
        view = get_poll_by_post(db_session, poll_post.id)

        assert view.question == "Where to?"
        assert [o.option_text for o in view.options] == ["Tacos", "Ramen", "Salad"]
        assert view.total_votes == 0
        assert not view.expired

    @pytest.mark.parametrize(
        "options",
        [["only one"], ["a", "A"], ["a", "  "], [str(i) for i in range(11)], ["a", "x" * 101]],
    )
    def test_rejects_bad_options(self, options):
        with pytest.raises(ValidationError):
            PollCreate(question="Q?", options=options)

    def test_rejects_past_expiry(self, db_session, make_post, test_user):
        poll = PollCreate(question="Q?", options=["a", "b"], expires_at=utcnow() - timedelta(hours=1))

        with pytest.raises(ValidationFailed) as excinfo:
            make_post(test_user, "late poll", poll=poll)

        assert excinfo.value.code == "INVALID_POLL"
        assert db_session.execute(select(func.count()).select_from(Poll)).scalar_one() == 0

    def test_post_without_poll(self, db_session, test_post):
        with pytest.raises(NotFound) as excinfo:
            get_poll_by_post(db_session, test_post.id)

        assert excinfo.value.code == "POLL_NOT_FOUND"


class TestVote:
    def test_vote_updates_tally_and_viewer_choice(
        self, db_session, poll_post, other_user, make_user, event_bus
    ):
        poll = _poll(db_session, poll_post)
        tacos, ramen, _ = _options(db_session, poll)

        vote(db_session, poll.id, tacos.id, make_user())
        view = vote(db_session, poll.id, ramen.id, other_user, events=event_bus)

        assert view.total_votes == 2
        assert [o.vote_count for o in view.options] == [1, 1, 0]
        assert [o.percentage for o in view.options] == [50.0, 50.0, 0.0]
        assert view.viewer_option_id == ramen.id
        assert event_bus.names() == [POLL_UPDATED]
        assert event_bus.events[0][1]["postId"] == poll_post.id

    def test_second_vote_is_rejected(self, db_session, poll_post, other_user):
        poll = _poll(db_session, poll_post)
        tacos, ramen, _ = _options(db_session, poll)
        vote(db_session, poll.id, tacos.id, other_user)

        with pytest.raises(Conflict) as excinfo:
            vote(db_session, poll.id, ramen.id, other_user)

        assert excinfo.value.status_code == 403
        assert excinfo.value.code == "ALREADY_VOTED"
        assert db_session.execute(select(func.count()).select_from(PollVote)).scalar_one() == 1
        db_session.expire_all()
        assert [o.vote_count for o in _options(db_session, poll)] == [1, 0, 0]
        assert get_poll_by_post(db_session, poll_post.id).total_votes == 1

    def test_option_from_another_poll(self, db_session, poll_post, make_post, test_user, other_user):
        other = make_post(
            test_user, "another", poll=PollCreate(question="Other?", options=["yes", "no"])
        )
        foreign_option = _options(db_session, _poll(db_session, other))[0]

        with pytest.raises(ValidationFailed) as excinfo:
            vote(db_session, _poll(db_session, poll_post).id, foreign_option.id, other_user)

        assert excinfo.value.code == "INVALID_OPTION"

    def test_expired_poll(self, db_session, poll_post, other_user):
        poll = _poll(db_session, poll_post)
        poll.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(ValidationFailed) as excinfo:
            vote(db_session, poll.id, _options(db_session, poll)[0].id, other_user)

        assert excinfo.value.code == "POLL_EXPIRED"
        assert get_poll_by_post(db_session, poll_post.id).expired

    def test_unknown_poll_and_deleted_post(self, db_session, poll_post, test_user, other_user):
        with pytest.raises(NotFound):
            vote(db_session, 999_999, 1, other_user)

        poll = _poll(db_session, poll_post)
        option_id = _options(db_session, poll)[0].id
        delete_post(db_session, poll_post.id, test_user)

        with pytest.raises(NotFound) as excinfo:
            vote(db_session, poll.id, option_id, other_user)
        assert excinfo.value.code == "POLL_NOT_FOUND"

import pytest

from app.core.exceptions import InvalidTransitionError, ValidationError
from app.models.requirement import RequirementStatus as S
from app.services.requirement_service import (
    CLOSED_STATUSES,
    REQUIREMENT_TRANSITIONS,
    can_transition,
    check_transition,
    parse_statuses,
)


def test_every_status_has_a_transition_entry():
    assert set(REQUIREMENT_TRANSITIONS) == set(S)


@pytest.mark.parametrize("current,new", [
    (S.DRAFT, S.SUBMITTED),
    (S.SUBMITTED, S.FORWARDED),
    (S.FORWARDED, S.UNDER_REVIEW),
    (S.UNDER_REVIEW, S.CLIENT_REVIEW),
    (S.CLIENT_REVIEW, S.ACCEPTED),
    (S.ACCEPTED, S.UNDER_REVIEW),
    (S.ACCEPTED, S.COMPLETED),
])
def test_allowed_moves(current, new):
    assert can_transition(current, new)


@pytest.mark.parametrize("current,new", [
    (S.DRAFT, S.FORWARDED),
    (S.SUBMITTED, S.ACCEPTED),
    (S.REJECTED, S.SUBMITTED),
    (S.COMPLETED, S.UNDER_REVIEW),
    (S.ACCEPTED, S.DRAFT),
])
def test_refused_moves(current, new):
    assert not can_transition(current, new)
    with pytest.raises(InvalidTransitionError):
        check_transition(current, new)


def test_terminal_statuses_have_no_exits():
    assert REQUIREMENT_TRANSITIONS[S.REJECTED] == frozenset()
    assert REQUIREMENT_TRANSITIONS[S.COMPLETED] == frozenset()
    assert {S.DRAFT, S.REJECTED, S.COMPLETED} == CLOSED_STATUSES


def test_rejection_needs_a_reason():
    with pytest.raises(ValidationError, match="reason is required"):
        check_transition(S.SUBMITTED, S.REJECTED)
    with pytest.raises(ValidationError):
        check_transition(S.SUBMITTED, S.REJECTED, "   ")
    check_transition(S.SUBMITTED, S.REJECTED, "Salary below market")


def test_parse_statuses():
    assert parse_statuses(None) == []
    assert parse_statuses("submitted, UNDER_REVIEW,") == [S.SUBMITTED, S.UNDER_REVIEW]
    with pytest.raises(ValidationError, match="Unknown requirement status: PAUSED"):
        parse_statuses("SUBMITTED,PAUSED")

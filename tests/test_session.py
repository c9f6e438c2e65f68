"""Tests for bisect session state and bound invariants."""

import pytest

from svbisect.core.session import (
    BisectSession,
    BoundKind,
    SessionState,
    check_bound_order,
    most_recent_first,
    validate_term,
    validate_terms,
)
from svbisect.errors import DuplicateBoundName, InvalidBoundName, InvalidBoundOrder


def test_state_progression():
    session = BisectSession(original_revision="42")
    assert session.state is SessionState.AWAITING_BOTH_BOUNDS
    assert session.waiting_status() == "status: waiting for both 'good' and 'bad' revisions"

    session.set_bound(BoundKind.UPPER, "100")
    assert session.state is SessionState.AWAITING_LOWER_BOUND
    assert session.waiting_status() == "status: waiting for a 'good' revision"

    session.set_bound(BoundKind.LOWER, "10")
    assert session.state is SessionState.READY
    assert session.is_ready
    assert session.waiting_status() is None


def test_waiting_status_uses_terms():
    session = BisectSession(original_revision="1", lower_bound="5", term_good="old", term_bad="new")
    assert session.waiting_status() == "status: waiting for a 'new' revision"
    assert session.term_for(BoundKind.LOWER) == "old"
    assert session.term_for(BoundKind.UPPER) == "new"


def test_upper_bound_may_widen_but_not_cross_lower():
    session = BisectSession(original_revision="1", upper_bound="50", lower_bound="10")

    session.set_bound(BoundKind.UPPER, "80")
    assert session.upper_bound == "80"

    with pytest.raises(InvalidBoundOrder):
        session.set_bound(BoundKind.UPPER, "10")
    with pytest.raises(InvalidBoundOrder):
        session.set_bound(BoundKind.UPPER, "5")
    assert session.upper_bound == "80"


def test_lower_bound_may_widen_but_not_cross_upper():
    session = BisectSession(original_revision="1", upper_bound="50", lower_bound="10")

    session.set_bound(BoundKind.LOWER, "2")
    assert session.lower_bound == "2"

    with pytest.raises(InvalidBoundOrder):
        session.set_bound(BoundKind.LOWER, "50")
    with pytest.raises(InvalidBoundOrder):
        session.set_bound(BoundKind.LOWER, "60")
    assert session.lower_bound == "2"


def test_rejected_bound_keeps_skip_set():
    session = BisectSession(original_revision="1", upper_bound="50", lower_bound="10", skipped={"60"})

    with pytest.raises(InvalidBoundOrder):
        session.set_bound(BoundKind.LOWER, "60")
    assert session.skipped == {"60"}


def test_set_bound_unskips_revision():
    session = BisectSession(original_revision="1", upper_bound="50", lower_bound="10", skipped={"30"})
    session.set_bound(BoundKind.LOWER, "30")

    assert session.lower_bound == "30"
    assert session.skipped == set()


def test_bounds_compare_numerically():
    session = BisectSession(original_revision="1", lower_bound="9")
    session.set_bound(BoundKind.UPPER, "10")
    assert session.upper_bound == "10"


def test_skip_set_algebra():
    session = BisectSession(original_revision="1")

    assert session.add_skipped({"9", "100", "20"}) == ["100", "20", "9"]
    assert session.add_skipped({"20", "30"}) == ["30"]
    assert session.add_skipped({"20"}) == []
    assert session.remove_skipped({"20", "55"}) == ["20"]
    assert session.skipped == {"9", "100", "30"}


def test_most_recent_first():
    assert most_recent_first({"9", "10", "100"}) == ["100", "10", "9"]


def test_check_bound_order():
    check_bound_order("10", "20")
    check_bound_order(None, "20")
    with pytest.raises(InvalidBoundOrder, match="cannot be the same"):
        check_bound_order("20", "20")
    with pytest.raises(InvalidBoundOrder, match="ancestor"):
        check_bound_order("30", "20")


@pytest.mark.parametrize("term", ["fixed", "Broken", "not-yet", "was_ok"])
def test_validate_term_accepts(term):
    assert validate_term(term) == term


@pytest.mark.parametrize("term", ["1st", "-x", "a b", "a1", "", "skip", "reset", "mark-good"])
def test_validate_term_rejects(term):
    with pytest.raises(InvalidBoundName):
        validate_term(term)


def test_validate_terms_duplicate():
    validate_terms("old", None)
    with pytest.raises(DuplicateBoundName):
        validate_terms("same", "same")


def test_command_aliases():
    session = BisectSession(original_revision="1", term_good="fast", term_bad="slow")
    assert session.command_aliases() == {"fast": "good", "slow": "bad"}
    assert BisectSession(original_revision="1").command_aliases() == {}

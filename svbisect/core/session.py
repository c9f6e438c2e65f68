#!/usr/bin/env python3
"""Bisect session state.

Holds the search state of a bisect session (bounds, skip set, term names)
and enforces the ordering invariant between the two bounds.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from svbisect.errors import DuplicateBoundName, InvalidBoundName, InvalidBoundOrder


# Constants
DEFAULT_GOOD_TERM = "good"
DEFAULT_BAD_TERM = "bad"
BISECT_COMMANDS = (
    "start",
    "bad",
    "good",
    "mark-bad",
    "mark-good",
    "terms",
    "skip",
    "unskip",
    "log",
    "run",
    "replay",
    "reset",
)
TERM_PATTERN = re.compile(r"^[A-Za-z][-_A-Za-z]*$")


class BoundKind(Enum):
    """Which end of the search range a revision bounds."""

    LOWER = "good"
    UPPER = "bad"


class SessionState(Enum):
    """Progress of a session towards being able to narrow."""

    AWAITING_BOTH_BOUNDS = "awaiting_both_bounds"
    AWAITING_LOWER_BOUND = "awaiting_lower_bound"
    AWAITING_UPPER_BOUND = "awaiting_upper_bound"
    READY = "ready"


def rev_num(revision: str) -> int:
    """Numeric value of a concrete revision identifier."""
    return int(revision)


def validate_term(term: str) -> str:
    """Check that a good/bad term can be used as a command alias.

    Args:
        term: Proposed term

    Returns:
        The term unchanged

    Raises:
        InvalidBoundName: If the term is malformed or masks a bisect command
    """
    if not TERM_PATTERN.match(term):
        raise InvalidBoundName(
            "Term must start with a letter and contain only letters, '-', or '_'"
        )
    if term in BISECT_COMMANDS:
        raise InvalidBoundName(f"Term '{term}' cannot mask another bisect command")
    return term


def validate_terms(term_good: Optional[str], term_bad: Optional[str]) -> None:
    """Validate a pair of terms given to 'start'.

    Raises:
        InvalidBoundName: If either term is invalid
        DuplicateBoundName: If both terms are given and equal
    """
    for term in (term_good, term_bad):
        if term is not None:
            validate_term(term)
    if term_good is not None and term_good == term_bad:
        raise DuplicateBoundName("The 'good' and 'bad' terms cannot be the same.")


def check_bound_order(lower: Optional[str], upper: Optional[str]) -> None:
    """Ensure lower strictly precedes upper when both are known.

    Raises:
        InvalidBoundOrder: If the bounds are equal or inverted
    """
    if lower is None or upper is None:
        return
    if rev_num(lower) == rev_num(upper):
        raise InvalidBoundOrder("The 'good' and 'bad' revisions cannot be the same")
    if rev_num(lower) > rev_num(upper):
        raise InvalidBoundOrder(
            "The 'good' revision must be an ancestor of the 'bad' revision"
        )


def most_recent_first(revisions: Iterable[str]) -> List[str]:
    """Sort revisions newest first."""
    return sorted(revisions, key=rev_num, reverse=True)


@dataclass
class BisectSession:
    """Persisted search state of a bisect session.

    Attributes:
        original_revision: Working-copy revision when the session started
        local_path: Directory the session was started from
        head_revision: Newest revision of the history when started
        first_revision: Oldest revision of the history when started
        upper_bound: Revision known to contain the defect ("bad")
        lower_bound: Revision known not to contain the defect ("good")
        skipped: Revisions excluded from candidate selection
        term_good: Custom name for the good term (None for "good")
        term_bad: Custom name for the bad term (None for "bad")
    """

    original_revision: str
    local_path: str = ""
    head_revision: Optional[str] = None
    first_revision: Optional[str] = None
    upper_bound: Optional[str] = None
    lower_bound: Optional[str] = None
    skipped: Set[str] = field(default_factory=set)
    term_good: Optional[str] = None
    term_bad: Optional[str] = None

    @property
    def good_name(self) -> str:
        return self.term_good or DEFAULT_GOOD_TERM

    @property
    def bad_name(self) -> str:
        return self.term_bad or DEFAULT_BAD_TERM

    def term_for(self, kind: BoundKind) -> str:
        """Display name of a bound kind."""
        return self.good_name if kind is BoundKind.LOWER else self.bad_name

    @property
    def is_ready(self) -> bool:
        """True when both bounds are set and narrowing can proceed."""
        return self.upper_bound is not None and self.lower_bound is not None

    @property
    def state(self) -> SessionState:
        if self.is_ready:
            return SessionState.READY
        if self.upper_bound is None and self.lower_bound is None:
            return SessionState.AWAITING_BOTH_BOUNDS
        if self.lower_bound is None:
            return SessionState.AWAITING_LOWER_BOUND
        return SessionState.AWAITING_UPPER_BOUND

    def waiting_status(self) -> Optional[str]:
        """Describe which bounds are still missing.

        Returns:
            Status line, or None if both bounds are set
        """
        state = self.state
        if state is SessionState.AWAITING_BOTH_BOUNDS:
            return f"status: waiting for both '{self.good_name}' and '{self.bad_name}' revisions"
        if state is SessionState.AWAITING_LOWER_BOUND:
            return f"status: waiting for a '{self.good_name}' revision"
        if state is SessionState.AWAITING_UPPER_BOUND:
            return f"status: waiting for a '{self.bad_name}' revision"
        return None

    def command_aliases(self) -> Dict[str, str]:
        """Map custom terms to the command they stand for."""
        aliases = {}
        if self.term_good:
            aliases[self.term_good] = "good"
        if self.term_bad:
            aliases[self.term_bad] = "bad"
        return aliases

    def check_bound(self, kind: BoundKind, revision: str) -> None:
        """Check that a revision may become the given bound.

        The upper bound may move later than its current value (to recheck a
        wider range) but never to or before the lower bound; the lower bound
        may move earlier but never to or after the upper bound.

        Raises:
            InvalidBoundOrder: If the new bound would violate the ordering
        """
        if kind is BoundKind.LOWER:
            if self.upper_bound is not None and rev_num(revision) >= rev_num(self.upper_bound):
                raise InvalidBoundOrder(
                    f"The '{self.good_name}' revision must be older than the "
                    f"'{self.bad_name}' revision"
                )
        elif self.lower_bound is not None and rev_num(revision) <= rev_num(self.lower_bound):
            raise InvalidBoundOrder(
                f"The '{self.bad_name}' revision must be newer than the "
                f"'{self.good_name}' revision"
            )

    def set_bound(self, kind: BoundKind, revision: str) -> None:
        """Assign a bound, un-skipping the revision.

        Raises:
            InvalidBoundOrder: If the new bound would violate the ordering;
                the session is left unchanged
        """
        self.check_bound(kind, revision)
        self.skipped.discard(revision)
        if kind is BoundKind.LOWER:
            self.lower_bound = revision
        else:
            self.upper_bound = revision

    def add_skipped(self, revisions: Set[str]) -> List[str]:
        """Skip revisions.

        Returns:
            Newly skipped revisions, most recent first
        """
        added = revisions - self.skipped
        self.skipped |= added
        return most_recent_first(added)

    def remove_skipped(self, revisions: Set[str]) -> List[str]:
        """Stop skipping revisions.

        Returns:
            Revisions that were skipped and no longer are, most recent first
        """
        removed = revisions & self.skipped
        self.skipped -= removed
        return most_recent_first(removed)

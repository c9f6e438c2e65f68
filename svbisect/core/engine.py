#!/usr/bin/env python3
"""Narrowing algorithm for bisect sessions.

Given the revisions between the two bounds, picks the next revision to test
or decides that the search is over. The engine is pure: fetching history and
updating the working copy are left to the caller.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from svbisect.core.session import BisectSession
from svbisect.errors import BisectError


logger = logging.getLogger(__name__)


class NarrowOutcome(Enum):
    """Result of one narrowing step."""

    FOUND = "found"
    INCONCLUSIVE = "inconclusive"
    CONTINUE = "continue"


@dataclass
class NarrowResult:
    """Outcome of a narrowing step.

    Attributes:
        outcome: Found, inconclusive or continue
        revision: First bad revision (found/inconclusive) or next revision to test
        candidates: Revisions strictly between the bounds, newest first
        remaining: Number of testable (non-skipped) candidates
        steps: Estimated number of steps left (continue only)
    """

    outcome: NarrowOutcome
    revision: str
    candidates: List[str] = field(default_factory=list)
    remaining: int = 0
    steps: int = 0

    @property
    def is_terminal(self) -> bool:
        """True when no further revision can be tested."""
        return self.outcome is not NarrowOutcome.CONTINUE


def estimate_steps(remaining: int) -> int:
    """Estimated number of bisection steps for a number of testable revisions."""
    if remaining <= 1:
        return 0
    return math.ceil(math.log2(remaining))


class BisectEngine:
    """Binary search over the unskipped revisions between two bounds."""

    @staticmethod
    def narrow(session: BisectSession, revisions: Sequence[str]) -> NarrowResult:
        """Perform one narrowing step.

        Args:
            session: Session with both bounds set
            revisions: Every revision from upper_bound down to lower_bound,
                inclusive, newest first

        Returns:
            NarrowResult describing the outcome

        Raises:
            BisectError: If the session does not have both bounds
        """
        if not session.is_ready:
            raise BisectError("Cannot narrow a session until both bounds are set")

        candidates = list(revisions[1:-1])
        testable = [rev for rev in candidates if rev not in session.skipped]
        logger.debug(
            f"Narrowing {session.upper_bound}:{session.lower_bound}: "
            f"{len(candidates)} candidates, {len(testable)} testable"
        )

        if not candidates:
            return NarrowResult(NarrowOutcome.FOUND, session.upper_bound)

        if not testable:
            return NarrowResult(
                NarrowOutcome.INCONCLUSIVE,
                session.upper_bound,
                candidates=candidates,
            )

        next_revision = testable[len(testable) // 2]
        return NarrowResult(
            NarrowOutcome.CONTINUE,
            next_revision,
            candidates=candidates,
            remaining=len(testable),
            steps=estimate_steps(len(testable)),
        )

    @staticmethod
    def describe_progress(result: NarrowResult) -> Optional[str]:
        """Progress line for a continue outcome, None otherwise."""
        if result.outcome is not NarrowOutcome.CONTINUE:
            return None
        steps = "1 step" if result.steps == 1 else f"{result.steps} steps"
        return (
            f"Bisecting: {result.remaining} revisions left to test after this "
            f"(roughly {steps})"
        )

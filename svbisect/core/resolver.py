#!/usr/bin/env python3
"""Revision expression resolution.

Turns user-supplied revision expressions (a number, HEAD/BASE/PREV/COMMITTED,
optionally followed by +N or -N) into concrete revision numbers by querying
the history of a path.
"""

import logging
import re
from dataclasses import dataclass
from typing import Set

from svbisect.errors import MalformedRevisionExpression, UnresolvableRevision
from svbisect.svn.base import SvnCommandError, VersionControl


logger = logging.getLogger(__name__)

# Constants
REVISION_KEYWORDS = ("HEAD", "BASE", "PREV", "COMMITTED")
_REV = r"(?:\d+|" + "|".join(REVISION_KEYWORDS) + r")(?:[+-]\d+)?"
REVISION_PATTERN = re.compile(r"^(\d+|" + "|".join(REVISION_KEYWORDS) + r")([+-]\d+)?$")
RANGE_PATTERN = re.compile(rf"^{_REV}(?::{_REV})?$")
DELTA_PATTERN = re.compile(r"[-+]")


def looks_like_revision_range(text: str) -> bool:
    """True if text is a revision expression or a REV:REV range."""
    return RANGE_PATTERN.match(text) is not None


@dataclass(frozen=True)
class RevisionRange:
    """Inclusive revision range as passed to a history query."""

    start: str
    end: str

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


class RevisionResolver:
    """Resolve revision expressions against the history of a path.

    Stateless apart from the history backend it queries; safe to call
    repeatedly.

    Attributes:
        vcs: Version-control backend used for history queries
    """

    def __init__(self, vcs: VersionControl) -> None:
        self.vcs = vcs

    def _revision_number(self, base: str, delta: int, path: str) -> str:
        if delta == 0:
            window = base
        elif delta < 0:
            window = f"{base}:0"
        else:
            window = f"{base}:HEAD"
        wanted = abs(delta) + 1
        label = f"{base}{delta:+d}" if delta else base

        try:
            entries = self.vcs.log(window, path=path, limit=wanted, with_message=False)
        except SvnCommandError as exc:
            raise UnresolvableRevision(
                f"Cannot resolve revision '{label}' for path '{path}': {exc}"
            ) from exc

        if len(entries) < wanted:
            raise UnresolvableRevision(f"Cannot resolve revision '{label}' for path '{path}'")
        return entries[wanted - 1].revision

    def resolve(self, expr: str, path: str) -> str:
        """Resolve a single revision expression.

        Args:
            expr: Expression such as "1234", "HEAD", "PREV-3" or "500+2"
            path: Path whose history is used

        Returns:
            Concrete revision number

        Raises:
            MalformedRevisionExpression: If expr is not a revision expression
            UnresolvableRevision: If the history cannot satisfy expr
        """
        match = REVISION_PATTERN.match(expr)
        if match is None:
            raise MalformedRevisionExpression(f"Malformed revision '{expr}'")

        base, delta = match.group(1), match.group(2)
        revision = self._revision_number(base, int(delta) if delta else 0, path)
        logger.debug(f"Resolved {expr} for {path} to {revision}")
        return revision

    def resolve_range(self, expr: str, path: str) -> RevisionRange:
        """Resolve a revision or REV:REV range expression.

        Ends carrying a +N/-N offset are resolved to concrete revisions; plain
        numbers and keywords are passed through for the history query to
        interpret. A single revision yields a one-element range.

        Raises:
            MalformedRevisionExpression: If expr is not a range expression
            UnresolvableRevision: If an offset cannot be satisfied
        """
        if not looks_like_revision_range(expr):
            raise MalformedRevisionExpression(f"Malformed revision range '{expr}'")

        parts = expr.split(":")
        if len(parts) == 1:
            revision = self.resolve(parts[0], path)
            return RevisionRange(revision, revision)

        start, end = (
            self.resolve(part, path) if DELTA_PATTERN.search(part) else part
            for part in parts
        )
        return RevisionRange(start, end)

    def expand(self, expr: str, path: str) -> Set[str]:
        """Collect the concrete revisions denoted by a revision or range.

        A range yields every revision in which path has history between the
        two ends.

        Args:
            expr: Revision or REV:REV expression
            path: Path whose history is used

        Returns:
            Set of concrete revisions
        """
        if ":" not in expr:
            return {self.resolve(expr, path)}

        revision_range = self.resolve_range(expr, path)
        entries = self.vcs.log(str(revision_range), path=path, with_message=False)
        return {entry.revision for entry in entries}

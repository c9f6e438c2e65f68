#!/usr/bin/env python3
"""Bisect Session Controller.

Orchestrates a bisect session: loads and saves the session through the
store, resolves user revisions, runs the narrowing engine and updates the
working copy to the next revision to test.

Every bound or skip mutation is persisted (and logged) before the working
copy is updated, so a failed update never loses search progress.
"""

import logging
import os
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Tuple

from svbisect.config.config import BisectConfig
from svbisect.core.engine import BisectEngine, NarrowOutcome, NarrowResult
from svbisect.core.resolver import RevisionResolver
from svbisect.core.session import (
    BisectSession,
    BoundKind,
    check_bound_order,
    validate_terms,
)
from svbisect.errors import NoActiveSession, SessionAlreadyActive
from svbisect.svn.base import LogEntry, VersionControl, WorkingCopyInfo


if TYPE_CHECKING:
    from svbisect.persistence.state_manager import SessionStore


logger = logging.getLogger(__name__)

# Constants
LOG_DIVIDER_WIDTH = 72


@dataclass
class MutationResult:
    """Result of a bound or skip mutation.

    Attributes:
        changed: Whether the session was modified
        revisions: Revisions whose role changed, most recent first
        narrowed: Narrowing result if both bounds are set
    """

    changed: bool
    revisions: List[str] = field(default_factory=list)
    narrowed: Optional[NarrowResult] = None

    @property
    def is_complete(self) -> bool:
        """True when narrowing reached a terminal outcome."""
        return self.narrowed is not None and self.narrowed.is_terminal


def format_log_entry(entry: LogEntry) -> str:
    """Format a commit for display.

    Args:
        entry: Log entry, ideally with changed paths

    Returns:
        Multi-line description of the commit
    """
    date = entry.date.strftime("%Y-%m-%d %H:%M:%S") if entry.date else "n/a"
    lines = [
        "-" * LOG_DIVIDER_WIDTH,
        f"Commit: {entry.revision}",
        f"Author: {entry.author}",
        f"Date  : {date}",
        "-" * LOG_DIVIDER_WIDTH,
    ]
    lines.extend(f"    {line}" for line in entry.message)
    if entry.paths:
        lines.append("")
        for changed in entry.paths:
            line = f"  {changed.action} {changed.path}"
            if changed.copy_from_path:
                line += f" (from {changed.copy_from_path} {changed.copy_from_rev})"
            lines.append(line)
    return "\n".join(lines)


class SessionController:
    """Drive a bisect session for one working copy.

    Attributes:
        vcs: Version-control backend
        store: Session store for this working copy
        config: Bisection configuration
        resolver: Revision resolver bound to vcs
    """

    def __init__(
        self,
        vcs: VersionControl,
        store: "SessionStore",
        config: Optional[BisectConfig] = None,
    ) -> None:
        """Initialize session controller.

        Args:
            vcs: Version-control backend
            store: Session store for the working copy
            config: Bisection configuration (defaults if omitted)
        """
        self.vcs = vcs
        self.store = store
        self.config = config or BisectConfig()
        self.resolver = RevisionResolver(vcs)

    def working_copy(self) -> WorkingCopyInfo:
        """Current working-copy position."""
        return self.vcs.working_copy_info()

    def load(self) -> BisectSession:
        """Load the active session.

        Raises:
            NoActiveSession: If no session has been started
        """
        bisect_session = self.store.load()
        if bisect_session is None:
            raise NoActiveSession(
                f"You must first start a bisect session with the "
                f"'{self.config.command_name} start' subcommand."
            )
        return bisect_session

    def command_aliases(self) -> Dict[str, str]:
        """Lookup table of custom terms to commands for the active session."""
        bisect_session = self.store.load()
        return bisect_session.command_aliases() if bisect_session else {}

    # Replay log

    def _log_revision(self, revision: str, term: str) -> None:
        message = self.vcs.first_log_line(revision)
        self.store.append_log(f"# {term}: [{revision}] {message}")

    def record_command(self, args: Iterable[str]) -> None:
        """Append a command line to the replay log.

        The configured program name may hold several words ("svu bisect");
        an explicit configuration file is carried as '-c FILE'.

        Args:
            args: Arguments after the program name
        """
        words = shlex.split(self.config.command_name)
        if self.config.config_file:
            words.extend(["-c", self.config.config_file])
        words.extend(args)
        self.store.append_log(" ".join(shlex.quote(word) for word in words))

    def record_status(self) -> Optional[str]:
        """Print and log the waiting status of the active session.

        Returns:
            Status line, or None if both bounds are set or no session exists
        """
        bisect_session = self.store.load()
        status = bisect_session.waiting_status() if bisect_session else None
        if status:
            self.store.append_log(f"# {status}")
            print(status)
        return status

    def read_log(self) -> List[str]:
        """Return the replay log of the active session."""
        self.load()
        return self.store.read_log()

    # Session lifecycle

    def _history_span(self, path: str) -> Tuple[Optional[str], Optional[str]]:
        newest = self.vcs.log("HEAD:0", path=path, limit=1, with_message=False)
        oldest = self.vcs.log("0:HEAD", path=path, limit=1, with_message=False)
        return (
            newest[0].revision if newest else None,
            oldest[0].revision if oldest else None,
        )

    def start(
        self,
        good: Optional[str] = None,
        bad: Optional[str] = None,
        term_good: Optional[str] = None,
        term_bad: Optional[str] = None,
        command_args: Optional[List[str]] = None,
    ) -> Optional[NarrowResult]:
        """Start a bisect session.

        Args:
            good: Revision expression known not to contain the defect
            bad: Revision expression known to contain the defect
            term_good: Custom name for the good term
            term_bad: Custom name for the bad term
            command_args: Command line to record in the replay log

        Returns:
            NarrowResult if both bounds were given, None otherwise

        Raises:
            SessionAlreadyActive: If a session is already in progress
            InvalidBoundName: If a term is invalid
            DuplicateBoundName: If both terms are equal
            InvalidBoundOrder: If good is not older than bad
        """
        existing = self.store.load()
        if existing is not None:
            status = existing.waiting_status()
            detail = f"{status}\n" if status else ""
            raise SessionAlreadyActive(
                f"bisect session already in progress!\n{detail}"
                f"Use '{self.config.command_name} reset' to reset your working copy"
            )

        validate_terms(term_good, term_bad)

        wc_info = self.working_copy()
        root = wc_info.root_path
        lower = self.resolver.resolve(good, root) if good else None
        upper = self.resolver.resolve(bad, root) if bad else None
        check_bound_order(lower, upper)

        head_rev, first_rev = self._history_span(root)
        bisect_session = BisectSession(
            original_revision=wc_info.current_revision,
            local_path=os.getcwd(),
            head_revision=head_rev,
            first_revision=first_rev,
            upper_bound=upper,
            lower_bound=lower,
            term_good=term_good,
            term_bad=term_bad,
        )
        self.store.create(bisect_session)
        logger.info(f"Started bisect session at revision {wc_info.current_revision}")

        self.store.clear_log()
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.store.append_log("#! /usr/bin/env sh\n")
        self.store.append_log(f"# {self.config.command_name} bisect log file {timestamp}")
        self.store.append_log(f"# Initiated from: {os.getcwd()}")
        self.store.append_log(f"# {'-' * LOG_DIVIDER_WIDTH}")
        self.store.append_log("set -e\n")
        if upper is not None:
            self._log_revision(upper, bisect_session.bad_name)
        if lower is not None:
            self._log_revision(lower, bisect_session.good_name)
        self.record_status()
        if command_args is not None:
            self.record_command(command_args)

        return self.perform_bisect(bisect_session) if bisect_session.is_ready else None

    def mark_bound(
        self,
        kind: BoundKind,
        revision: Optional[str] = None,
        command_args: Optional[List[str]] = None,
    ) -> MutationResult:
        """Mark a revision as the good (lower) or bad (upper) bound.

        The command line is logged as soon as the bound is persisted, so the
        replay log stays complete even if the working-copy update fails.

        Args:
            kind: Which bound to set
            revision: Revision expression (default: current working-copy revision)
            command_args: Command line to record in the replay log

        Returns:
            MutationResult with the narrowing result if both bounds are set

        Raises:
            NoActiveSession: If no session is active
            InvalidBoundOrder: If the bound would violate the ordering; nothing
                is persisted or logged
        """
        bisect_session = self.load()
        wc_info = self.working_copy()
        if revision is None:
            concrete = wc_info.current_revision
        else:
            concrete = self.resolver.resolve(revision, wc_info.root_path)

        bisect_session.set_bound(kind, concrete)
        self.store.save(bisect_session)
        self._log_revision(concrete, bisect_session.term_for(kind))
        if command_args is not None:
            self.record_command(command_args)
        logger.debug(f"Marked {concrete} as {kind.value}")

        narrowed = self.perform_bisect(bisect_session) if bisect_session.is_ready else None
        return MutationResult(changed=True, revisions=[concrete], narrowed=narrowed)

    def expand_revisions(self, exprs: Iterable[str]) -> Set[str]:
        """Expand revision and REV:REV arguments to concrete revisions.

        Args:
            exprs: Revision expressions; none means the current revision

        Returns:
            Set of concrete revisions
        """
        wc_info = self.working_copy()
        revisions: Set[str] = set()
        for expr in exprs:
            revisions |= self.resolver.expand(expr, wc_info.root_path)
        if not revisions:
            revisions.add(wc_info.current_revision)
        return revisions

    def mark_skip(
        self, revisions: Set[str], command_args: Optional[List[str]] = None
    ) -> MutationResult:
        """Exclude concrete revisions from candidate selection.

        Revisions already skipped are ignored; if none are new, nothing is
        persisted, logged or narrowed.

        Args:
            revisions: Concrete revisions to skip
            command_args: Command line to record in the replay log
        """
        bisect_session = self.load()
        added = bisect_session.add_skipped(set(revisions))
        if not added:
            return MutationResult(changed=False)

        self.store.save(bisect_session)
        for revision in added:
            self._log_revision(revision, "skip")
        if command_args is not None:
            self.record_command(command_args)

        narrowed = self.perform_bisect(bisect_session) if bisect_session.is_ready else None
        return MutationResult(changed=True, revisions=added, narrowed=narrowed)

    def mark_unskip(
        self, revisions: Set[str], command_args: Optional[List[str]] = None
    ) -> MutationResult:
        """Make previously skipped revisions eligible again."""
        bisect_session = self.load()
        removed = bisect_session.remove_skipped(set(revisions))
        if not removed:
            return MutationResult(changed=False)

        self.store.save(bisect_session)
        for revision in removed:
            self._log_revision(revision, "unskip")
        if command_args is not None:
            self.record_command(command_args)

        narrowed = self.perform_bisect(bisect_session) if bisect_session.is_ready else None
        return MutationResult(changed=True, revisions=removed, narrowed=narrowed)

    def reset(self, revision: Optional[str] = None, restore: bool = True) -> Optional[str]:
        """End the session and delete its state.

        Args:
            revision: Revision expression to update to (default: the revision at start)
            restore: Update the working copy; if False it is left untouched

        Returns:
            Revision the working copy is at afterwards, or None if no
            session was active
        """
        bisect_session = self.store.load()
        if bisect_session is None:
            return None

        wc_info = self.working_copy()
        if restore:
            if revision is not None:
                target = self.resolver.resolve(revision, wc_info.root_path)
            else:
                target = bisect_session.original_revision
            self.update_working_copy(target)
        else:
            target = wc_info.current_revision
            print(f"Working copy: [{target}] {self.vcs.first_log_line(target)}")

        self.store.delete()
        logger.info("Bisect session reset")
        return target

    # Narrowing

    def extant_revisions(self, upper: str, lower: str) -> List[str]:
        """Every revision from upper down to lower in the working copy's history."""
        print(f"Fetching history from revisions {upper} to {lower}")
        root = self.working_copy().root_path
        entries = self.vcs.log(f"{upper}:{lower}", path=root, with_message=False)
        return [entry.revision for entry in entries]

    def perform_bisect(self, bisect_session: BisectSession) -> NarrowResult:
        """Narrow the session and move the working copy to the next candidate.

        Args:
            bisect_session: Session with both bounds set

        Returns:
            NarrowResult of the step
        """
        revisions = self.extant_revisions(bisect_session.upper_bound, bisect_session.lower_bound)
        result = BisectEngine.narrow(bisect_session, revisions)

        if result.outcome is NarrowOutcome.FOUND:
            self._report_found(bisect_session, result)
        elif result.outcome is NarrowOutcome.INCONCLUSIVE:
            self._report_inconclusive(bisect_session, result)
        else:
            print(BisectEngine.describe_progress(result))
            self.update_working_copy(result.revision)
        return result

    def _report_found(self, bisect_session: BisectSession, result: NarrowResult) -> None:
        print(f"\nThe first '{bisect_session.bad_name}' revision is: {result.revision}")
        root = self.working_copy().root_path
        entries = self.vcs.log(result.revision, path=root, limit=1, with_paths=True)
        if entries:
            print(format_log_entry(entries[0]))

    def _report_inconclusive(self, bisect_session: BisectSession, result: NarrowResult) -> None:
        print("\nThere are only skipped revisions left to test.")
        print(f"The first '{bisect_session.bad_name}' commit could be any of:")
        for revision in [result.revision, *result.candidates]:
            print(f"{revision} {self.vcs.first_log_line(revision)}")
        print("We cannot bisect more!")

    def update_working_copy(self, revision: str) -> None:
        """Update the working copy to a revision.

        Raises:
            SvnCommandError: If the update fails
        """
        print(f"Updating working copy: [{revision}] {self.vcs.first_log_line(revision)}")
        self.vcs.update(revision, depth=self.config.svn.update_depth)

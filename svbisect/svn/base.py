#!/usr/bin/env python3
"""Abstract interface to the version-control backend.

The bisect engine only needs three capabilities from the repository: a
history query, a working-copy update and the current working-copy position.
Implementations handle the specific backend (the svn command line, a fake
used in tests, etc.).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


# Constants
DEFAULT_UPDATE_DEPTH = "infinity"


class SvnCommandError(Exception):
    """Raised when a version-control command reports failure.

    Attributes:
        command: Command line that was executed
        returncode: Exit status of the command
        stderr: Error output of the command
    """

    def __init__(self, command: List[str], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = stderr.strip() or f"'{' '.join(command)}' exited with status {returncode}"
        super().__init__(message)


@dataclass
class ChangedPath:
    """A path touched by a commit.

    Attributes:
        path: Repository path
        action: Change action (A, D, M, R)
        kind: Node kind (file, dir) if known
        copy_from_path: Source path when the change is a copy
        copy_from_rev: Source revision when the change is a copy
    """

    path: str
    action: str
    kind: str = ""
    copy_from_path: Optional[str] = None
    copy_from_rev: Optional[str] = None


@dataclass
class LogEntry:
    """One commit returned by a history query.

    Attributes:
        revision: Concrete revision number
        author: Commit author
        date: Commit timestamp (None when the history omits it)
        message: Commit message split into lines
        paths: Changed paths (only filled when requested)
    """

    revision: str
    author: str = "n/a"
    date: Optional[datetime] = None
    message: List[str] = field(default_factory=list)
    paths: List[ChangedPath] = field(default_factory=list)

    @property
    def first_line(self) -> str:
        """First line of the commit message, or an empty string."""
        return self.message[0] if self.message else ""


@dataclass
class WorkingCopyInfo:
    """Answer to "where are we now".

    Attributes:
        current_revision: Last committed revision of the working-copy root
        root_path: Absolute path of the working-copy root
    """

    current_revision: str
    root_path: str


class VersionControl(ABC):
    """Interface to the history and working copy used by a bisect session."""

    @abstractmethod
    def log(
        self,
        revision: str,
        path: Optional[str] = None,
        limit: Optional[int] = None,
        with_message: bool = True,
        with_paths: bool = False,
    ) -> List[LogEntry]:
        """Query history for a single revision or an inclusive range.

        Args:
            revision: Revision ("50", "HEAD") or range ("HEAD:0"); ranges are
                returned in the order given, i.e. "100:0" is descending
            path: Path whose history is queried (None for the working copy)
            limit: Maximum number of entries to return
            with_message: Include commit messages
            with_paths: Include changed paths

        Returns:
            Ordered list of log entries

        Raises:
            SvnCommandError: If the query fails
        """

    @abstractmethod
    def update(self, revision: str, depth: str = DEFAULT_UPDATE_DEPTH) -> None:
        """Materialize a revision in the working copy.

        Args:
            revision: Concrete revision to update to
            depth: Update depth

        Raises:
            SvnCommandError: If the update fails
        """

    @abstractmethod
    def working_copy_info(self) -> WorkingCopyInfo:
        """Return the current working-copy revision and root path.

        Raises:
            NotAWorkingCopy: If not run inside a working copy
        """

    def first_log_line(self, revision: str) -> str:
        """Return the first line of the commit message for a revision.

        Args:
            revision: Concrete revision

        Returns:
            First message line, or an empty string if the revision has no entry
        """
        entries = self.log(revision, limit=1)
        return entries[0].first_line if entries else ""

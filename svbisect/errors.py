#!/usr/bin/env python3
"""Exception hierarchy for svbisect.

Usage errors, ordering violations and resolution failures all derive from
BisectError so the CLI can report them uniformly. Failures of external
collaborators (svn, the database) have their own exceptions defined next to
the code that talks to them.
"""


class BisectError(Exception):
    """Base exception for bisect session errors."""


class NotAWorkingCopy(BisectError):
    """Raised when a command is run outside a subversion working copy."""


class ConfigError(BisectError):
    """Raised when the configuration file is missing or malformed."""


class NoActiveSession(BisectError):
    """Raised when a command needs a bisect session and none exists."""


class SessionAlreadyActive(BisectError):
    """Raised when starting a session while another one is in progress."""


class MalformedRevisionExpression(BisectError):
    """Raised when a revision string matches neither revision grammar."""


class UnresolvableRevision(BisectError):
    """Raised when a revision expression cannot be satisfied by the history."""


class InvalidBoundOrder(BisectError):
    """Raised when a bound would invert or collapse the search range."""


class InvalidBoundName(BisectError):
    """Raised when a good/bad term is not a valid, unreserved name."""


class DuplicateBoundName(BisectError):
    """Raised when the good and bad terms are the same."""


class UnrecoverableProbeExit(BisectError):
    """Raised when the probe command of 'bisect run' cannot be interpreted.

    Attributes:
        exit_code: Exit status of the probe, or None if it never ran
    """

    def __init__(self, message: str, exit_code=None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class BisectRunStalled(BisectError):
    """Raised when 'bisect run' makes no progress on the current revision."""


class ReplayFailed(BisectError):
    """Raised when a replayed log file exits unsuccessfully."""

#!/usr/bin/env python3
"""Automated bisection driven by a probe command.

Runs a user-supplied command on each candidate revision and marks the
revision from its exit status, following the 'git bisect run' convention:

- 0: good
- 125: skip (the revision cannot be tested)
- 1..127 except 125: bad
- anything else, or a command that cannot be run: abort
"""

import logging
import subprocess
from enum import Enum
from typing import Callable, List, Optional

from svbisect.core.controller import MutationResult, SessionController
from svbisect.core.engine import NarrowResult
from svbisect.core.session import BoundKind
from svbisect.errors import BisectError, BisectRunStalled, ReplayFailed, UnrecoverableProbeExit


logger = logging.getLogger(__name__)

# Constants
SKIP_EXIT_CODE = 125
MAX_RECOVERABLE_EXIT_CODE = 127
REPLAY_SHELL = "/bin/sh"

ProbeFunc = Callable[[List[str], str], int]


class ProbeVerdict(Enum):
    """Verdict derived from a probe exit status."""

    GOOD = "good"
    BAD = "bad"
    SKIP = "skip"


def classify_exit_code(exit_code: int) -> ProbeVerdict:
    """Interpret a probe exit status.

    Args:
        exit_code: Process exit status (negative if killed by a signal)

    Returns:
        ProbeVerdict for the revision

    Raises:
        UnrecoverableProbeExit: For statuses outside 0..127
    """
    if exit_code == 0:
        return ProbeVerdict.GOOD
    if exit_code == SKIP_EXIT_CODE:
        return ProbeVerdict.SKIP
    if 0 < exit_code <= MAX_RECOVERABLE_EXIT_CODE:
        return ProbeVerdict.BAD
    raise UnrecoverableProbeExit(
        f"'bisect run' failed. Probe returned unrecoverable exit code ({exit_code})",
        exit_code=exit_code,
    )


def run_probe(command: List[str], cwd: str) -> int:
    """Run the probe command with inherited stdout/stderr.

    Args:
        command: Command and arguments
        cwd: Directory to run in (the working-copy root)

    Returns:
        Exit status

    Raises:
        UnrecoverableProbeExit: If the command cannot be executed
    """
    logger.debug(f"Running probe: {' '.join(command)} in {cwd}")
    try:
        result = subprocess.run(command, cwd=cwd, check=False)
    except OSError as exc:
        raise UnrecoverableProbeExit(
            f"Command '{command[0]}' failed to execute: {exc}"
        ) from exc
    return result.returncode


class BisectRunner:
    """Repeatedly probe the working copy until the search ends.

    Attributes:
        controller: Session controller for the working copy
        command: Probe command and arguments
        probe: Function running the probe and returning its exit status
    """

    def __init__(
        self,
        controller: SessionController,
        command: List[str],
        probe: Optional[ProbeFunc] = None,
    ) -> None:
        self.controller = controller
        self.command = command
        self.probe = probe or run_probe

    def _apply(self, verdict: ProbeVerdict, term: str) -> MutationResult:
        if verdict is ProbeVerdict.GOOD:
            return self.controller.mark_bound(BoundKind.LOWER, command_args=[term])
        if verdict is ProbeVerdict.BAD:
            return self.controller.mark_bound(BoundKind.UPPER, command_args=[term])
        current = self.controller.working_copy().current_revision
        return self.controller.mark_skip({current}, command_args=[term])

    def run(self) -> NarrowResult:
        """Run the probe loop.

        Returns:
            Terminal NarrowResult (found or inconclusive)

        Raises:
            BisectError: If the session lacks a bound
            UnrecoverableProbeExit: If the probe cannot be interpreted; the
                session stays as last persisted
            BisectRunStalled: If a verdict does not move the search forward
        """
        bisect_session = self.controller.load()
        status = bisect_session.waiting_status()
        if status:
            print(status)
        if not bisect_session.is_ready:
            raise BisectError(
                f"'bisect run' cannot be used until a '{bisect_session.good_name}' revision "
                f"and a '{bisect_session.bad_name}' revision have been specified"
            )

        prog = self.controller.config.command_name
        while True:
            wc_info = self.controller.working_copy()
            bisect_session = self.controller.load()

            verdict = classify_exit_code(self.probe(self.command, wc_info.root_path))
            if verdict is ProbeVerdict.GOOD:
                term = bisect_session.good_name
            elif verdict is ProbeVerdict.BAD:
                term = bisect_session.bad_name
            else:
                term = "skip"
            print(f"{prog} {term}")

            result = self._apply(verdict, term)
            if not result.changed or result.narrowed is None:
                raise BisectRunStalled(
                    f"'bisect run' made no progress on revision {wc_info.current_revision}"
                )

            if result.is_complete:
                return result.narrowed


def replay_log(log_file: str, cwd: str) -> None:
    """Execute a replay log as a shell script.

    Args:
        log_file: Path to the log file
        cwd: Directory to run in (the working-copy root)

    Raises:
        ReplayFailed: If the script cannot run or exits unsuccessfully
    """
    logger.debug(f"Replaying {log_file} in {cwd}")
    try:
        result = subprocess.run([REPLAY_SHELL, log_file], cwd=cwd, check=False)
    except OSError as exc:
        raise ReplayFailed(f"Log replay could not be started: {exc}") from exc
    if result.returncode != 0:
        raise ReplayFailed("Log replay did not finish successfully")

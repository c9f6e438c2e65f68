#!/usr/bin/env python3
"""Subversion command-line client.

Implements the VersionControl interface by running the svn binary with
--xml output and parsing the result.
"""

import logging
import os
import subprocess
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from svbisect.errors import NotAWorkingCopy
from svbisect.svn.base import (
    DEFAULT_UPDATE_DEPTH,
    ChangedPath,
    LogEntry,
    SvnCommandError,
    VersionControl,
    WorkingCopyInfo,
)


logger = logging.getLogger(__name__)

# Constants
SVN_COMMAND_ENV = "SV_SVN"
DEFAULT_SVN_COMMAND = "svn"
SVN_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")


def parse_svn_date(text: Optional[str]) -> Optional[datetime]:
    """Parse an svn XML timestamp.

    Args:
        text: Timestamp such as 2024-03-01T12:00:00.000000Z

    Returns:
        Timezone-aware datetime, or None if missing or unparsable
    """
    if not text:
        return None
    for fmt in SVN_DATE_FORMATS:
        try:
            return datetime.strptime(text.strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    logger.debug(f"Unparsable svn date: {text}")
    return None


def _child_text(node: ET.Element, name: str, default: str = "") -> str:
    child = node.find(name)
    if child is None or child.text is None:
        return default
    return child.text


def parse_log_xml(text: str) -> List[LogEntry]:
    """Parse the output of 'svn log --xml'.

    Args:
        text: XML document

    Returns:
        Log entries in document order
    """
    root = ET.fromstring(text)
    entries = []
    for node in root.iter("logentry"):
        paths = [
            ChangedPath(
                path=path_node.text or "",
                action=path_node.get("action", ""),
                kind=path_node.get("kind", ""),
                copy_from_path=path_node.get("copyfrom-path"),
                copy_from_rev=path_node.get("copyfrom-rev"),
            )
            for path_node in node.iter("path")
        ]
        date_node = node.find("date")
        entries.append(
            LogEntry(
                revision=node.get("revision", ""),
                author=_child_text(node, "author", "n/a"),
                date=parse_svn_date(date_node.text if date_node is not None else None),
                message=_child_text(node, "msg").split("\n"),
                paths=paths,
            )
        )
    return entries


def parse_info_xml(text: str) -> List[WorkingCopyInfo]:
    """Parse the output of 'svn info --xml' for working-copy paths.

    Args:
        text: XML document

    Returns:
        One WorkingCopyInfo per entry that carries working-copy information
    """
    root = ET.fromstring(text)
    infos = []
    for entry in root.iter("entry"):
        commit = entry.find("commit")
        wc_info = entry.find("wc-info")
        if wc_info is None:
            continue
        infos.append(
            WorkingCopyInfo(
                current_revision=commit.get("revision", "") if commit is not None else "",
                root_path=_child_text(wc_info, "wcroot-abspath"),
            )
        )
    return infos


class SvnClient(VersionControl):
    """Version-control backend driven by the svn command line.

    Attributes:
        svn_command: Name or path of the svn binary
        cwd: Directory the commands run in (None for the process cwd)
    """

    def __init__(self, svn_command: Optional[str] = None, cwd: Optional[str] = None) -> None:
        """Initialize svn client.

        Args:
            svn_command: svn binary; defaults to $SV_SVN, then "svn"
            cwd: Directory the commands run in
        """
        self.svn_command = svn_command or os.environ.get(SVN_COMMAND_ENV, DEFAULT_SVN_COMMAND)
        self.cwd = cwd

    def run_command(self, args: List[str], cwd: Optional[str] = None) -> Tuple[int, str, str]:
        """Run an svn sub-command.

        Args:
            args: Arguments after the svn binary
            cwd: Working directory override

        Returns:
            Tuple of (return_code, stdout, stderr)
        """
        command = [self.svn_command, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                cwd=cwd or self.cwd,
                check=False,
            )
        except OSError as exc:
            raise SvnCommandError(command, -1, str(exc)) from exc
        return result.returncode, result.stdout, result.stderr

    def _run_checked(self, args: List[str], cwd: Optional[str] = None) -> str:
        ret, stdout, stderr = self.run_command(args, cwd=cwd)
        if ret != 0:
            raise SvnCommandError([self.svn_command, *args], ret, stderr)
        return stdout

    def log(
        self,
        revision: str,
        path: Optional[str] = None,
        limit: Optional[int] = None,
        with_message: bool = True,
        with_paths: bool = False,
    ) -> List[LogEntry]:
        args = ["log", "--xml"]
        if not with_message:
            args.append("--quiet")
        if with_paths:
            args.append("--verbose")
        if limit is not None:
            args.append(f"--limit={limit}")
        args.append(f"--revision={revision}")
        if path:
            args.append(path)
        return parse_log_xml(self._run_checked(args))

    def update(self, revision: str, depth: str = DEFAULT_UPDATE_DEPTH) -> None:
        root = self.working_copy_info().root_path
        self._run_checked(
            ["update", f"--depth={depth}", f"--revision={revision}"],
            cwd=root,
        )
        logger.debug(f"Updated {root} to revision {revision}")

    def working_copy_info(self) -> WorkingCopyInfo:
        try:
            infos = parse_info_xml(self._run_checked(["info", "--xml", "."]))
        except (SvnCommandError, ET.ParseError) as exc:
            logger.debug(f"svn info failed: {exc}")
            raise NotAWorkingCopy(
                "This command must be run in a subversion working copy directory."
            ) from exc
        if not infos:
            raise NotAWorkingCopy(
                "This command must be run in a subversion working copy directory."
            )
        return infos[0]

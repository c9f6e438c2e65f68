"""Pytest configuration and fixtures for svbisect tests."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from svbisect.config import BisectConfig
from svbisect.core.controller import SessionController
from svbisect.persistence import SessionStore
from svbisect.svn.base import (
    DEFAULT_UPDATE_DEPTH,
    ChangedPath,
    LogEntry,
    SvnCommandError,
    VersionControl,
    WorkingCopyInfo,
)


class FakeVersionControl(VersionControl):
    """In-memory history and working copy.

    Revisions are integers; every revision in `revisions` is one in which
    the working copy has history.
    """

    def __init__(
        self,
        revisions: List[int],
        current: int,
        root_path: str = "/wc",
        messages: Optional[Dict[int, str]] = None,
    ) -> None:
        self.revisions = sorted(revisions, reverse=True)
        self.current = current
        self.root_path = root_path
        self.messages = messages or {}
        self.updates: List[tuple] = []
        self.log_calls: List[str] = []
        self.fail_update = False

    def _point(self, text: str) -> int:
        if text == "HEAD":
            return self.revisions[0]
        if text in ("BASE", "COMMITTED"):
            return self.current
        if text == "PREV":
            older = [rev for rev in self.revisions if rev < self.current]
            return older[0] if older else -1
        return int(text)

    def _entry(self, revision: int) -> LogEntry:
        return LogEntry(
            revision=str(revision),
            author="alice",
            date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            message=self.messages.get(revision, f"Commit {revision}").split("\n"),
            paths=[ChangedPath(path="/trunk/file.c", action="M", kind="file")],
        )

    def log(
        self,
        revision: str,
        path: Optional[str] = None,
        limit: Optional[int] = None,
        with_message: bool = True,
        with_paths: bool = False,
    ) -> List[LogEntry]:
        self.log_calls.append(revision)
        if ":" in revision:
            start_text, end_text = revision.split(":")
            start, end = self._point(start_text), self._point(end_text)
            low, high = min(start, end), max(start, end)
            selected = [rev for rev in self.revisions if low <= rev <= high]
            if start < end:
                selected.reverse()
        else:
            point = self._point(revision)
            selected = [point] if point in self.revisions else []

        if limit is not None:
            selected = selected[:limit]
        return [self._entry(rev) for rev in selected]

    def update(self, revision: str, depth: str = DEFAULT_UPDATE_DEPTH) -> None:
        if self.fail_update:
            raise SvnCommandError(["svn", "update", f"--revision={revision}"], 1, "svn: E155004")
        self.updates.append((revision, depth))
        self.current = int(revision)

    def working_copy_info(self) -> WorkingCopyInfo:
        return WorkingCopyInfo(current_revision=str(self.current), root_path=self.root_path)


@pytest.fixture(autouse=True)
def configure_logging(caplog):
    """Capture debug output from svbisect during tests."""
    caplog.set_level(logging.DEBUG, logger="svbisect")


@pytest.fixture
def dense_vcs():
    """History 0, 10, ..., 100 with the working copy at revision 40."""
    return FakeVersionControl(list(range(0, 101, 10)), current=40)


@pytest.fixture
def store(tmp_path):
    """Session store in a temporary directory."""
    session_store = SessionStore(str(tmp_path / ".svbisect"))
    yield session_store
    session_store.close()


@pytest.fixture
def make_controller(store, tmp_path):
    """Build a controller around a fake history."""

    def _make(vcs: FakeVersionControl) -> SessionController:
        vcs.root_path = str(tmp_path)
        return SessionController(vcs, store, BisectConfig())

    return _make


@pytest.fixture
def controller(make_controller, dense_vcs):
    """Controller over the dense 0..100 history."""
    return make_controller(dense_vcs)

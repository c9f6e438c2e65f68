"""Version-control backends for bisect sessions."""

from svbisect.svn.base import (
    ChangedPath,
    LogEntry,
    SvnCommandError,
    VersionControl,
    WorkingCopyInfo,
)
from svbisect.svn.client import SvnClient


__all__ = [
    "ChangedPath",
    "LogEntry",
    "SvnClient",
    "SvnCommandError",
    "VersionControl",
    "WorkingCopyInfo",
]

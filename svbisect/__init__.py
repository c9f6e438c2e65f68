"""Subversion Bisection Tool - Binary search for the revision that introduced a change."""

__version__ = "0.1.0"

from svbisect.config import BisectConfig
from svbisect.core import BisectEngine, BisectSession, SessionController
from svbisect.persistence import SessionStore


__all__ = [
    "BisectConfig",
    "BisectEngine",
    "BisectSession",
    "SessionController",
    "SessionStore",
    "__version__",
]

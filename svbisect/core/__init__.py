"""Core bisection components: session state, resolution, narrowing and control."""

from svbisect.core.controller import MutationResult, SessionController
from svbisect.core.engine import BisectEngine, NarrowOutcome, NarrowResult
from svbisect.core.resolver import RevisionRange, RevisionResolver
from svbisect.core.runner import BisectRunner, ProbeVerdict
from svbisect.core.session import BisectSession, BoundKind, SessionState


__all__ = [
    "BisectEngine",
    "BisectRunner",
    "BisectSession",
    "BoundKind",
    "MutationResult",
    "NarrowOutcome",
    "NarrowResult",
    "ProbeVerdict",
    "RevisionRange",
    "RevisionResolver",
    "SessionController",
    "SessionState",
]

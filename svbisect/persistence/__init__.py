"""Database models and state management for bisect sessions."""

from svbisect.persistence.models import SessionRecord
from svbisect.persistence.state_manager import DatabaseError, SessionStore


__all__ = [
    # Models
    "SessionRecord",
    # Session Store
    "DatabaseError",
    "SessionStore",
]

#!/usr/bin/env python3
"""SQLAlchemy ORM models for the bisect session database.

A working copy holds at most one bisect session, stored as a single row.
"""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class SessionRecord(Base):
    """Bisect session record.

    Revisions are stored as text; the skip set is a JSON array.
    """

    __tablename__ = "bisect_session"

    session_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    local_path: Mapped[str] = mapped_column(String, nullable=False, default="")
    original_rev: Mapped[str] = mapped_column(String, nullable=False)
    head_rev: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    first_rev: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    max_rev: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    min_rev: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    skipped: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON as TEXT
    term_good: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    term_bad: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    start_time: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SessionRecord(id={self.session_id}, good={self.min_rev}, "
            f"bad={self.max_rev}, original={self.original_rev})>"
        )

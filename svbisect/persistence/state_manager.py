#!/usr/bin/env python3
"""Session Store - Persistent bisect state using SQLAlchemy ORM.

Keeps the single active bisect session of a working copy in a SQLite
database and the replay log in a plain text file next to it. The store is
the only place that enforces "one session per working copy"; there is no
locking across concurrent invocations.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import scoped_session, sessionmaker

from svbisect.core.session import BisectSession, most_recent_first
from svbisect.errors import SessionAlreadyActive
from svbisect.persistence.models import Base, SessionRecord


logger = logging.getLogger(__name__)

# Constants
DEFAULT_DB_NAME = "bisect.db"
DEFAULT_LOG_NAME = "bisect_log"


class DatabaseError(Exception):
    """Base exception for database-related errors."""


def _record_to_session(record: SessionRecord) -> BisectSession:
    return BisectSession(
        original_revision=record.original_rev,
        local_path=record.local_path,
        head_revision=record.head_rev,
        first_revision=record.first_rev,
        upper_bound=record.max_rev,
        lower_bound=record.min_rev,
        skipped=set(json.loads(record.skipped or "[]")),
        term_good=record.term_good,
        term_bad=record.term_bad,
    )


def _apply_session(record: SessionRecord, bisect_session: BisectSession) -> None:
    record.local_path = bisect_session.local_path
    record.original_rev = bisect_session.original_revision
    record.head_rev = bisect_session.head_revision
    record.first_rev = bisect_session.first_revision
    record.max_rev = bisect_session.upper_bound
    record.min_rev = bisect_session.lower_bound
    record.skipped = json.dumps(most_recent_first(bisect_session.skipped))
    record.term_good = bisect_session.term_good
    record.term_bad = bisect_session.term_bad
    record.updated_at = datetime.now(timezone.utc).isoformat()


class SessionStore:
    """Manage the persisted bisect session of one working copy.

    The database is created on first write, so read-only commands run
    outside a session leave no files behind.

    Attributes:
        data_dir: Directory holding the database and replay log
        db_path: Path to the SQLite database file
        log_path: Path to the replay log
    """

    def __init__(
        self,
        data_dir: str,
        db_name: str = DEFAULT_DB_NAME,
        log_name: str = DEFAULT_LOG_NAME,
    ) -> None:
        """Initialize session store.

        Args:
            data_dir: Directory for state files
            db_name: Database file name
            log_name: Replay log file name
        """
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.log_path = self.data_dir / log_name
        self.engine: Optional[Engine] = None
        self.Session = None

    def _connect(self, create: bool) -> bool:
        """Open the database, creating it if requested.

        Returns:
            True if a database is available
        """
        if self.engine is not None:
            return True
        if not create and not self.db_path.exists():
            return False

        self.data_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
            Base.metadata.create_all(self.engine)
        except Exception as exc:
            msg = f"Failed to initialize database: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc

        self.Session = scoped_session(sessionmaker(bind=self.engine))
        logger.debug(f"Database initialized at {self.db_path}")
        return True

    def close(self) -> None:
        """Release database connections."""
        if self.Session is not None:
            self.Session.remove()
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.Session = None

    def load(self) -> Optional[BisectSession]:
        """Load the active session.

        Returns:
            BisectSession or None if no session is active
        """
        if not self._connect(create=False):
            return None

        session = self.Session()
        try:
            record = session.execute(select(SessionRecord).limit(1)).scalar_one_or_none()
            return _record_to_session(record) if record else None
        except Exception as exc:
            msg = f"Failed to load session: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def create(self, bisect_session: BisectSession) -> None:
        """Persist a new session.

        Args:
            bisect_session: Session to store

        Raises:
            SessionAlreadyActive: If a session already exists
            DatabaseError: If the write fails
        """
        self._connect(create=True)
        session = self.Session()
        try:
            existing = session.execute(select(SessionRecord).limit(1)).scalar_one_or_none()
            if existing:
                raise SessionAlreadyActive("bisect session already in progress!")

            record = SessionRecord(start_time=datetime.now(timezone.utc).isoformat())
            _apply_session(record, bisect_session)
            session.add(record)
            session.commit()
            logger.debug(f"Created bisect session {record.session_id}")

        except SessionAlreadyActive:
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            msg = f"Failed to create session: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def save(self, bisect_session: BisectSession) -> None:
        """Replace the stored session wholesale.

        Raises:
            DatabaseError: If no session exists or the write fails
        """
        self._connect(create=True)
        session = self.Session()
        try:
            record = session.execute(select(SessionRecord).limit(1)).scalar_one_or_none()
            if not record:
                raise DatabaseError("No bisect session to update")

            _apply_session(record, bisect_session)
            session.commit()
            logger.debug(f"Saved bisect session {record.session_id}")

        except DatabaseError:
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            msg = f"Failed to save session: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def delete(self) -> None:
        """Delete the session record and the replay log."""
        if self._connect(create=False):
            session = self.Session()
            try:
                session.execute(delete(SessionRecord))
                session.commit()
            except Exception as exc:
                session.rollback()
                msg = f"Failed to delete session: {exc}"
                logger.error(msg)
                raise DatabaseError(msg) from exc
            finally:
                session.close()

        self.clear_log()
        logger.debug("Deleted bisect session state")

    def append_log(self, line: str) -> None:
        """Append one line to the replay log."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a") as f:
            f.write(line + "\n")

    def read_log(self) -> List[str]:
        """Return the replay log lines (empty if there is no log)."""
        if not self.log_path.is_file():
            return []
        with open(self.log_path) as f:
            return f.read().splitlines()

    def clear_log(self) -> None:
        """Remove the replay log if present."""
        if self.log_path.is_file():
            self.log_path.unlink()

"""Session storage layer."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from drift.models import AgentCommit, Session
from drift.storage.db import Database, get_default_db_path

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class SessionStoreError(Exception):
    """Session store operation error."""


def to_db_time(dt: datetime) -> str:
    """Format a datetime as a fixed-width UTC ISO string that sorts by time."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SessionStore:
    """Durable storage for agent sessions and their commits.

    All writes of a ``store_sessions`` call happen in one transaction. One
    store may be shared between threads; every statement on the shared
    connection is serialized by the store's lock.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize the session store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.drift/drift.db
        """
        self._db_path = db_path or get_default_db_path()
        self._db = Database(self._db_path)
        self._lock = threading.RLock()

        # Initialize schema on first access
        self._db.initialize_schema()

    @property
    def db(self) -> Database:
        """Get the database instance."""
        return self._db

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def __enter__(self) -> SessionStore:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    def store_sessions(self, sessions: Iterable[Session]) -> None:
        """Save or replace sessions and their commits.

        A stored session with the same id is replaced entirely, including
        its commits. Sessions whose commits all moved to another session
        are removed.

        Args:
            sessions: Sessions to save.

        Raises:
            SessionStoreError: If the batch couldn't be written. Nothing from
                the batch is kept in that case.
        """
        sessions = list(sessions)
        if not sessions:
            return

        now = int(time.time())

        with self._lock:
            try:
                with self._db.transaction() as cursor:
                    for session in sessions:
                        self._upsert_session(cursor, session, now)
                    cursor.execute(
                        "DELETE FROM sessions WHERE id NOT IN "
                        "(SELECT DISTINCT session_id FROM commits)"
                    )
            except sqlite3.Error as e:
                raise SessionStoreError(f"Failed to store sessions: {e}") from e

        logger.debug("Stored %d sessions", len(sessions))

    def _upsert_session(self, cursor: sqlite3.Cursor, session: Session, now: int) -> None:
        cursor.execute(
            """
            INSERT INTO sessions (
                id, repo, repo_path, branch, author,
                start_time, end_time,
                files_changed, insertions, deletions,
                pr_number, pr_title, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                repo = excluded.repo,
                repo_path = excluded.repo_path,
                branch = excluded.branch,
                author = excluded.author,
                start_time = excluded.start_time,
                end_time = excluded.end_time,
                files_changed = excluded.files_changed,
                insertions = excluded.insertions,
                deletions = excluded.deletions,
                pr_number = excluded.pr_number,
                pr_title = excluded.pr_title
            """,
            (
                session.id,
                session.repo,
                session.repo_path,
                session.branch,
                session.author,
                to_db_time(session.start_time),
                to_db_time(session.end_time),
                session.files_changed,
                session.insertions,
                session.deletions,
                session.pr_number,
                session.pr_title,
                now,
            ),
        )

        # Replace the session's commits
        cursor.execute("DELETE FROM commits WHERE session_id = ?", (session.id,))
        cursor.executemany(
            """
            INSERT INTO commits (
                hash, session_id, author, email, date,
                message, body, repo, repo_path, branch,
                files_changed, insertions, deletions
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(hash) DO UPDATE SET
                session_id = excluded.session_id,
                author = excluded.author,
                email = excluded.email,
                date = excluded.date,
                message = excluded.message,
                body = excluded.body,
                repo = excluded.repo,
                repo_path = excluded.repo_path,
                branch = excluded.branch,
                files_changed = excluded.files_changed,
                insertions = excluded.insertions,
                deletions = excluded.deletions
            """,
            [
                (
                    commit.hash,
                    session.id,
                    commit.author,
                    commit.email,
                    to_db_time(commit.date),
                    commit.message,
                    commit.body,
                    commit.repo,
                    commit.repo_path,
                    commit.branch,
                    commit.files_changed,
                    commit.insertions,
                    commit.deletions,
                )
                for commit in session.commits
            ],
        )

    def list_sessions(self, limit: int | None = DEFAULT_LIST_LIMIT) -> list[Session]:
        """List the most recent sessions.

        Args:
            limit: Maximum number of sessions to return, or None for all.

        Returns:
            Sessions by start time, newest first, each with its commits.
        """
        with self._lock:
            # SQLite treats a negative LIMIT as no limit
            cursor = self._db.execute(
                "SELECT * FROM sessions ORDER BY start_time DESC, id ASC LIMIT ?",
                (limit if limit is not None else -1,),
            )
            return [self._row_to_session(row) for row in cursor.fetchall()]

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by id or id prefix.

        An exact match wins. Otherwise the most recent session whose id
        starts with ``session_id`` is returned.

        Args:
            session_id: Full session id or a prefix of one.

        Returns:
            Session if found, None otherwise.
        """
        if not session_id:
            return None

        with self._lock:
            row = self._db.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()

            if row is None:
                row = self._db.execute(
                    """
                    SELECT * FROM sessions
                    WHERE substr(id, 1, ?) = ?
                    ORDER BY start_time DESC, id ASC
                    LIMIT 1
                    """,
                    (len(session_id), session_id),
                ).fetchone()

            if row is None:
                return None

            return self._row_to_session(row)

    def count_sessions(self) -> int:
        """Get the number of stored sessions."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) AS total FROM sessions").fetchone()
        return row["total"] if row else 0

    def _get_commits(self, session_id: str) -> list[AgentCommit]:
        cursor = self._db.execute(
            "SELECT * FROM commits WHERE session_id = ? ORDER BY date ASC, hash ASC",
            (session_id,),
        )
        return [
            AgentCommit(
                hash=row["hash"],
                author=row["author"],
                email=row["email"],
                date=from_db_time(row["date"]),
                message=row["message"],
                body=row["body"] or "",
                repo=row["repo"],
                repo_path=row["repo_path"],
                branch=row["branch"],
                files_changed=row["files_changed"] or 0,
                insertions=row["insertions"] or 0,
                deletions=row["deletions"] or 0,
            )
            for row in cursor.fetchall()
        ]

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        """Convert a database row to a Session, loading its commits.

        Args:
            row: Row from the sessions table.

        Returns:
            Session instance.
        """
        return Session(
            id=row["id"],
            repo=row["repo"],
            repo_path=row["repo_path"],
            branch=row["branch"],
            author=row["author"],
            start_time=from_db_time(row["start_time"]),
            end_time=from_db_time(row["end_time"]),
            commits=self._get_commits(row["id"]),
            files_changed=row["files_changed"] or 0,
            insertions=row["insertions"] or 0,
            deletions=row["deletions"] or 0,
            pr_number=row["pr_number"],
            pr_title=row["pr_title"],
        )

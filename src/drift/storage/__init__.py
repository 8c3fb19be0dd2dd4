"""Storage layer for session data."""

from drift.storage.db import Database, DatabaseError
from drift.storage.store import SessionStore, SessionStoreError

__all__ = ["SessionStore", "SessionStoreError", "Database", "DatabaseError"]

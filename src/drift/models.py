"""Agent activity models for drift.

This module defines the data models used across the aggregation pipeline:
commits attributed to automated agents, the work sessions they are grouped
into, and on-demand diff statistics for a session.
"""

import re
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

_REPO_SLUG_RE = re.compile(r"[^a-z0-9]")
_BRANCH_SLUG_RE = re.compile(r"[^a-z0-9-]", re.IGNORECASE)


class AgentCommit(BaseModel):
    """A single commit attributed to an automated agent."""

    hash: str
    author: str
    email: str
    date: datetime
    message: str
    body: str = ""

    # Origin
    repo: str
    repo_path: str
    branch: str

    # Per-commit stats
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    @property
    def hash_short(self) -> str:
        return self.hash[:7]


class Session(BaseModel):
    """A run of agent commits in one repo, on one branch, by one author.

    Sessions are derived on every scan; they are never edited in place.
    """

    # Identity
    id: str
    repo: str
    repo_path: str
    branch: str
    author: str

    # Timing
    start_time: datetime
    end_time: datetime

    # Content (chronological ascending)
    commits: list[AgentCommit] = Field(default_factory=list)

    # Aggregate stats
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    # Pull request detected from commit subjects
    pr_number: int | None = None
    pr_title: str | None = None

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def commit_count(self) -> int:
        return len(self.commits)


class DiffStats(BaseModel):
    """Aggregate change statistics for a session's commit range."""

    files_changed: list[str] = Field(default_factory=list)
    insertions: int = 0
    deletions: int = 0
    summary: str = ""


def generate_session_id(repo: str, branch: str, start_time: datetime) -> str:
    """Build a deterministic session identifier.

    The identifier is readable and stable across scans so that re-scanning
    the same history overwrites the same stored session.

    Args:
        repo: Repository display name.
        branch: Branch the session's commits belong to.
        start_time: Date of the session's first commit.

    Returns:
        Identifier such as ``api-feature-retry-20240115-1000``.

    Examples:
        >>> generate_session_id("My API", "feat/retry", datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        'myapi-featretry-20240115-1000'
    """
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)

    time_str = start_time.astimezone(timezone.utc).strftime("%Y%m%d-%H%M")
    repo_slug = _REPO_SLUG_RE.sub("", repo.lower())
    branch_slug = _BRANCH_SLUG_RE.sub("", branch)[:20]
    return f"{repo_slug}-{branch_slug}-{time_str}"

"""Grouping of agent commits into work sessions."""

from __future__ import annotations

import re
from collections.abc import Sequence

from drift.config import DEFAULT_SESSION_GAP_MINUTES
from drift.models import AgentCommit, Session, generate_session_id

_PR_RE = re.compile(r"\(#(\d+)\)")
_PR_SUFFIX_RE = re.compile(r"\s*\(#\d+\)")


def detect_pull_request(commits: Sequence[AgentCommit]) -> tuple[int | None, str | None]:
    """Find a pull request reference like ``(#123)`` in commit subjects.

    The first matching commit wins; later references are ignored.

    Returns:
        ``(pr_number, pr_title)``, or ``(None, None)`` if no subject matches.
    """
    for commit in commits:
        match = _PR_RE.search(commit.message)
        if match:
            title = _PR_SUFFIX_RE.sub("", commit.message, count=1)
            return int(match.group(1)), title
    return None, None


def build_session(commits: Sequence[AgentCommit]) -> Session:
    """Build a session from chronologically ordered commits of one bucket.

    Files changed is the sum of per-commit file counts, so a file touched by
    several commits is counted several times.

    Raises:
        ValueError: If ``commits`` is empty.
    """
    if not commits:
        raise ValueError("A session needs at least one commit")

    first = commits[0]
    last = commits[-1]
    pr_number, pr_title = detect_pull_request(commits)

    return Session(
        id=generate_session_id(first.repo, first.branch, first.date),
        repo=first.repo,
        repo_path=first.repo_path,
        branch=first.branch,
        author=first.author,
        start_time=first.date,
        end_time=last.date,
        commits=list(commits),
        files_changed=sum(c.files_changed for c in commits),
        insertions=sum(c.insertions for c in commits),
        deletions=sum(c.deletions for c in commits),
        pr_number=pr_number,
        pr_title=pr_title,
    )


def group_into_sessions(
    commits: Sequence[AgentCommit],
    gap_minutes: float = DEFAULT_SESSION_GAP_MINUTES,
) -> list[Session]:
    """Group commits into sessions.

    Commits are bucketed by (repo, branch, author). Within a bucket a new
    session starts whenever the gap to the previous commit is strictly
    greater than ``gap_minutes``.

    Args:
        commits: Agent commits in any order.
        gap_minutes: Largest gap allowed inside one session.

    Returns:
        Sessions ordered by start time, most recent first.
    """
    if not commits:
        return []

    # Hash breaks date ties so that input order never matters
    ordered = sorted(commits, key=lambda c: (c.date, c.hash))

    buckets: dict[tuple[str, str, str], list[AgentCommit]] = {}
    for commit in ordered:
        key = (commit.repo, commit.branch, commit.author)
        buckets.setdefault(key, []).append(commit)

    sessions: list[Session] = []
    for bucket in buckets.values():
        current = [bucket[0]]

        for prev, curr in zip(bucket, bucket[1:]):
            gap = (curr.date - prev.date).total_seconds() / 60
            if gap > gap_minutes:
                sessions.append(build_session(current))
                current = [curr]
            else:
                current.append(curr)

        sessions.append(build_session(current))

    sessions.sort(key=lambda s: s.id)
    sessions.sort(key=lambda s: s.start_time, reverse=True)
    return sessions

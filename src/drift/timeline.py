"""Session timeline filtering."""

from __future__ import annotations

from collections.abc import Iterable

from drift.models import Session


def filter_sessions(
    sessions: Iterable[Session],
    repo: str | None = None,
    author: str | None = None,
) -> list[Session]:
    """Filter sessions by repo name and author, keeping their order.

    Args:
        sessions: Sessions to filter.
        repo: Exact repo name (case-insensitive).
        author: Author substring (case-insensitive).

    Returns:
        Matching sessions.
    """
    result = []
    for session in sessions:
        if repo and session.repo.lower() != repo.lower():
            continue
        if author and author.lower() not in session.author.lower():
            continue
        result.append(session)
    return result


def group_by_repo(sessions: Iterable[Session]) -> dict[str, list[Session]]:
    """Group sessions by repo, in order of each repo's first appearance."""
    by_repo: dict[str, list[Session]] = {}
    for session in sessions:
        by_repo.setdefault(session.repo, []).append(session)
    return by_repo

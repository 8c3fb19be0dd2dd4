"""Aggregate diffs for stored sessions."""

from __future__ import annotations

import logging
from pathlib import Path

from drift import git_utils
from drift.models import DiffStats, Session

logger = logging.getLogger(__name__)

DIFF_UNAVAILABLE = "(Unable to generate diff)"


def _session_ranges(session: Session) -> list[str]:
    """Commit ranges to try, widest first."""
    oldest = session.commits[0].hash
    newest = session.commits[-1].hash
    return [f"{oldest}^..{newest}", f"{newest}^..{newest}"]


def get_session_diff(session: Session) -> str:
    """Get the combined diff of every commit in a session.

    Falls back to the newest commit's own diff when the full range can't be
    diffed (for example when the oldest commit is a root commit).

    Returns:
        Diff text, an empty string for a session without commits, or a
        placeholder if no diff could be produced.
    """
    if not session.commits:
        return ""

    path = Path(session.repo_path)
    for range_expr in _session_ranges(session):
        diff = git_utils.get_diff_text(path, range_expr)
        if diff is not None:
            return diff
        logger.debug("Diff %s failed for session %s", range_expr, session.id)

    logger.warning("Unable to generate diff for session %s", session.id)
    return DIFF_UNAVAILABLE


def _range_stats(path: Path, range_expr: str) -> DiffStats | None:
    files = git_utils.get_name_only(path, range_expr)
    if files is None:
        return None
    shortstat = git_utils.get_shortstat(path, range_expr)
    if shortstat is None:
        return None

    return DiffStats(
        files_changed=files,
        insertions=shortstat.insertions,
        deletions=shortstat.deletions,
        summary=(
            f"{len(files)} files changed, "
            f"+{shortstat.insertions}/-{shortstat.deletions} lines"
        ),
    )


def get_session_diff_stats(session: Session) -> DiffStats:
    """Get files touched and line counts across a session's commit range.

    If git can't diff the range or the newest commit alone, the session's
    stored aggregates are used instead.
    """
    if not session.commits:
        return DiffStats(summary="No changes")

    path = Path(session.repo_path)
    for range_expr in _session_ranges(session):
        stats = _range_stats(path, range_expr)
        if stats is not None:
            return stats
        logger.debug("Diff stats %s failed for session %s", range_expr, session.id)

    return DiffStats(
        files_changed=[],
        insertions=session.insertions,
        deletions=session.deletions,
        summary=(
            f"~{session.files_changed} files changed, "
            f"+{session.insertions}/-{session.deletions} lines"
        ),
    )

"""Git utilities for reading commit history and diffs.

Every function here shells out to ``git`` with a timeout and reports failure
with ``None`` (or ``False``) instead of raising, so callers can degrade
per repository or per commit.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# Field and record separators for git log output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%s", "%b"]) + _RECORD_SEP

_FILES_RE = re.compile(r"(\d+)\s+files?")
_INSERTIONS_RE = re.compile(r"(\d+)\s+insertion")
_DELETIONS_RE = re.compile(r"(\d+)\s+deletion")

DEFAULT_BRANCHES = ("main", "master")

QUICK_TIMEOUT = 10
LOG_TIMEOUT = 30
DIFF_TIMEOUT = 60


@dataclass
class LogEntry:
    """A raw commit record as reported by ``git log``."""

    hash: str
    author_name: str
    author_email: str
    date: datetime
    message: str
    body: str


@dataclass
class ShortStat:
    """Compact change summary for a commit range."""

    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


def _run_git(path: Path, args: list[str], timeout: int = QUICK_TIMEOUT) -> str | None:
    """Run a git command and return stdout, or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=path,
            capture_output=True,
            text=True,
            # Paths, authors and file contents aren't guaranteed to be UTF-8
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except (subprocess.SubprocessError, OSError) as e:
        logger.debug("git %s failed in %s: %s", " ".join(args), path, e)
        return None

    if result.returncode != 0:
        logger.debug(
            "git %s exited %d in %s: %s",
            " ".join(args),
            result.returncode,
            path,
            result.stderr.strip(),
        )
        return None

    return result.stdout


def is_git_repo(path: Path) -> bool:
    """Check if a path is inside a git repository.

    Args:
        path: Path to check.

    Returns:
        True if the path is inside a git repository.
    """
    if not path.exists():
        return False
    return _run_git(path, ["rev-parse", "--git-dir"], timeout=5) is not None


def get_current_branch(path: Path) -> str | None:
    """Get the checked-out branch name, or None if it can't be determined."""
    output = _run_git(path, ["rev-parse", "--abbrev-ref", "HEAD"])
    if output is None:
        return None
    return output.strip() or None


def _parse_date(value: str) -> datetime | None:
    try:
        date = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


def parse_log_output(output: str) -> list[LogEntry]:
    """Parse ``git log`` output produced with the drift record format.

    Records with an unparseable date are skipped.
    """
    entries = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue

        parts = record.split(_FIELD_SEP, 5)
        if len(parts) < 6:
            continue

        commit_hash, author_name, author_email, date_str, message, body = parts
        date = _parse_date(date_str)
        if date is None:
            logger.debug("Skipping commit %s with bad date %r", commit_hash, date_str)
            continue

        entries.append(
            LogEntry(
                hash=commit_hash.strip(),
                author_name=author_name,
                author_email=author_email,
                date=date,
                message=message,
                body=body.strip(),
            )
        )
    return entries


def get_log(
    path: Path,
    since: datetime,
    all_branches: bool = True,
    author: str | None = None,
) -> list[LogEntry] | None:
    """Get commits made after ``since``, newest first.

    Args:
        path: Path to the git repository.
        since: Only include commits after this time.
        all_branches: Walk every ref instead of just HEAD.
        author: Optional case-insensitive author substring filter.

    Returns:
        List of log entries, or None if git log failed.
    """
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)

    args = ["log", f"--since={since.isoformat()}", f"--format={_LOG_FORMAT}"]
    if all_branches:
        args.append("--all")
    if author:
        args.extend(["--fixed-strings", "--regexp-ignore-case", f"--author={author}"])

    output = _run_git(path, args, timeout=LOG_TIMEOUT)
    if output is None:
        return None
    return parse_log_output(output)


def pick_branch(branches: list[str]) -> str | None:
    """Pick the most specific branch, preferring non-default ones."""
    non_default = [b for b in branches if b not in DEFAULT_BRANCHES]
    if non_default:
        return non_default[0]
    return branches[0] if branches else None


def get_branches_containing(path: Path, commit_hash: str) -> list[str] | None:
    """List local branches that contain a commit.

    Returns:
        Branch names, or None if git failed.
    """
    output = _run_git(
        path, ["branch", "--contains", commit_hash, "--format=%(refname:short)"]
    )
    if output is None:
        return None
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_shortstat(text: str) -> ShortStat:
    """Parse ``git diff --shortstat`` output.

    Examples:
        >>> parse_shortstat(" 3 files changed, 10 insertions(+), 2 deletions(-)")
        ShortStat(files_changed=3, insertions=10, deletions=2)
    """
    files = _FILES_RE.search(text)
    insertions = _INSERTIONS_RE.search(text)
    deletions = _DELETIONS_RE.search(text)
    return ShortStat(
        files_changed=int(files.group(1)) if files else 0,
        insertions=int(insertions.group(1)) if insertions else 0,
        deletions=int(deletions.group(1)) if deletions else 0,
    )


def get_shortstat(path: Path, range_expr: str) -> ShortStat | None:
    """Get the shortstat for a commit range, or None if git failed."""
    output = _run_git(path, ["diff", "--shortstat", range_expr])
    if output is None:
        return None
    return parse_shortstat(output)


def get_diff_text(path: Path, range_expr: str) -> str | None:
    """Get the textual diff for a commit range, or None if git failed."""
    return _run_git(path, ["diff", range_expr], timeout=DIFF_TIMEOUT)


def get_name_only(path: Path, range_expr: str) -> list[str] | None:
    """List paths touched by a commit range, or None if git failed."""
    output = _run_git(path, ["diff", "--name-only", range_expr])
    if output is None:
        return None
    return [line for line in output.splitlines() if line.strip()]

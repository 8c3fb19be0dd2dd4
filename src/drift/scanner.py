"""Repository scanning and agent commit classification."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from drift import git_utils
from drift.models import AgentCommit

if TYPE_CHECKING:
    from pathlib import Path

    from drift.config import AgentConfig, Config, RepoConfig

logger = logging.getLogger(__name__)

UNKNOWN_BRANCH = "unknown"

# Worker limits for the repo fan-out and per-commit enrichment
MAX_REPO_WORKERS = 8
MAX_COMMIT_WORKERS = 8


@dataclass
class RepoScanResult:
    """Outcome of scanning one repository."""

    repo: str
    commits: list[AgentCommit] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_agent_commit(
    author: str,
    email: str,
    message: str,
    body: str,
    agents: AgentConfig,
) -> bool:
    """Decide whether a commit was made by an automated agent.

    Author patterns are case-insensitive substrings checked against both the
    author name and email. Message patterns are case-insensitive regular
    expressions searched in the subject and body.

    Args:
        author: Author name.
        email: Author email.
        message: Commit subject line.
        body: Commit body.
        agents: Agent detection rules.

    Returns:
        True if any author or message pattern matches.
    """
    author_lower = author.lower()
    email_lower = email.lower()
    for pattern in agents.authors:
        needle = pattern.lower()
        if needle in author_lower or needle in email_lower:
            return True

    full_message = f"{message}\n{body}"
    for pattern in agents.message_patterns:
        if re.search(pattern, full_message, re.IGNORECASE):
            return True

    return False


def matches_author_filter(author: str, email: str, author_filter: str) -> bool:
    needle = author_filter.lower()
    return needle in author.lower() or needle in email.lower()


def should_include(
    author: str,
    email: str,
    message: str,
    body: str,
    agents: AgentConfig,
    author_filter: str | None = None,
) -> bool:
    """Apply the explicit author filter if given, otherwise the agent rules."""
    if author_filter:
        return matches_author_filter(author, email, author_filter)
    return is_agent_commit(author, email, message, body, agents)


def _commit_stats(path: Path, commit_hash: str) -> git_utils.ShortStat:
    stats = git_utils.get_shortstat(path, f"{commit_hash}^..{commit_hash}")
    if stats is None:
        # Root commits have no parent to diff against
        return git_utils.ShortStat()
    return stats


def _commit_branch(path: Path, commit_hash: str, current_branch: str) -> str:
    branches = git_utils.get_branches_containing(path, commit_hash)
    if branches is None:
        return UNKNOWN_BRANCH
    return git_utils.pick_branch(branches) or current_branch


def scan_repo(
    repo: RepoConfig,
    config: Config,
    since: datetime,
    author: str | None = None,
) -> list[AgentCommit]:
    """Collect agent commits from one repository.

    Args:
        repo: Repository to scan.
        config: Configuration holding the agent rules.
        since: Only consider commits after this time.
        author: Optional author filter that replaces agent classification.

    Returns:
        Agent commits in git log order. Empty if the path is not a
        repository or the log can't be read.
    """
    path = repo.resolved_path()

    if not git_utils.is_git_repo(path):
        logger.warning("Skipping %s: %s is not a git repository", repo.name, path)
        return []

    entries = git_utils.get_log(path, since, all_branches=True, author=author)
    if entries is None:
        logger.warning("Failed to read git log for %s", repo.name)
        return []

    included = [
        entry
        for entry in entries
        if should_include(
            entry.author_name,
            entry.author_email,
            entry.message,
            entry.body,
            config.agents,
            author_filter=author,
        )
    ]
    if not included:
        return []

    current_branch = git_utils.get_current_branch(path) or UNKNOWN_BRANCH

    def enrich(entry: git_utils.LogEntry) -> AgentCommit:
        stats = _commit_stats(path, entry.hash)
        branch = _commit_branch(path, entry.hash, current_branch)
        return AgentCommit(
            hash=entry.hash,
            author=entry.author_name,
            email=entry.author_email,
            date=entry.date,
            message=entry.message,
            body=entry.body,
            repo=repo.name,
            repo_path=str(path),
            branch=branch,
            files_changed=stats.files_changed,
            insertions=stats.insertions,
            deletions=stats.deletions,
        )

    # map() keeps the log order regardless of completion order
    with ThreadPoolExecutor(max_workers=min(MAX_COMMIT_WORKERS, len(included))) as ex:
        commits = list(ex.map(enrich, included))

    logger.debug("Found %d agent commits in %s", len(commits), repo.name)
    return commits


def scan_repos(
    config: Config,
    since: datetime,
    author: str | None = None,
    repo: str | None = None,
) -> list[RepoScanResult]:
    """Scan configured repositories concurrently.

    Every repository is scanned as its own task. A task that raises is
    reported in its result and contributes no commits; it never cancels
    the other tasks.

    Args:
        config: Configuration with repos and agent rules.
        since: Only consider commits after this time.
        author: Optional author filter.
        repo: Optional repo name filter (case-insensitive).

    Returns:
        One result per scanned repository, in config order.
    """
    repos = config.repos
    if repo is not None:
        found = config.get_repo(repo)
        repos = [found] if found is not None else []

    if not repos:
        return []

    results: list[RepoScanResult] = []
    with ThreadPoolExecutor(max_workers=min(MAX_REPO_WORKERS, len(repos))) as ex:
        futures = [(r, ex.submit(scan_repo, r, config, since, author)) for r in repos]

        for repo_config, future in futures:
            try:
                commits = future.result()
            except Exception as e:
                logger.warning("Failed to scan %s: %s", repo_config.name, e)
                results.append(RepoScanResult(repo=repo_config.name, error=str(e)))
                continue
            results.append(RepoScanResult(repo=repo_config.name, commits=commits))

    return results


def scan_all_repos(
    config: Config,
    since: datetime,
    author: str | None = None,
    repo: str | None = None,
) -> list[AgentCommit]:
    """Scan all configured repositories and merge their agent commits.

    Returns:
        Agent commits from every repository, newest first.
    """
    commits: list[AgentCommit] = []
    for result in scan_repos(config, since, author=author, repo=repo):
        commits.extend(result.commits)

    commits.sort(key=lambda c: c.date, reverse=True)
    return commits

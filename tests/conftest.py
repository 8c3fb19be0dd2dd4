import os
import shutil
import subprocess
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from drift.models import AgentCommit
from drift.storage import SessionStore

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    temp_dir = tempfile.mkdtemp()
    db_path = Path(temp_dir) / "test_db.sqlite"
    yield db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def session_store(temp_db_path):
    """Create a SessionStore with a temporary database."""
    store = SessionStore(db_path=temp_db_path)
    yield store
    store.close()


@pytest.fixture
def make_commit():
    """Factory for AgentCommit objects offset from a fixed base time."""
    counter = {"n": 0}

    def _make(
        minutes: float = 0,
        repo: str = "api",
        branch: str = "main",
        author: str = "agent1",
        message: str | None = None,
        files_changed: int = 1,
        insertions: int = 10,
        deletions: int = 2,
        commit_hash: str | None = None,
    ) -> AgentCommit:
        counter["n"] += 1
        n = counter["n"]
        return AgentCommit(
            hash=commit_hash or f"{n:040x}",
            author=author,
            email=f"{author}@agents.dev",
            date=BASE_TIME + timedelta(minutes=minutes),
            message=message or f"commit {n}",
            body="",
            repo=repo,
            repo_path=f"/tmp/{repo}",
            branch=branch,
            files_changed=files_changed,
            insertions=insertions,
            deletions=deletions,
        )

    return _make


def _git(repo_path: Path, *args: str, env: dict | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=repo_path,
        check=True,
        capture_output=True,
        text=True,
        errors="replace",
        env={**os.environ, **(env or {})},
    )


def git_commit(
    repo_path: Path,
    filename: str,
    content: str | bytes,
    message: str,
    author: str = "Test User",
    email: str = "test@example.com",
    date: str | None = None,
) -> str:
    """Write a file and commit it, returning the new commit hash."""
    if isinstance(content, bytes):
        (repo_path / filename).write_bytes(content)
    else:
        (repo_path / filename).write_text(content)
    _git(repo_path, "add", ".")
    env = {
        "GIT_AUTHOR_NAME": author,
        "GIT_AUTHOR_EMAIL": email,
        "GIT_COMMITTER_NAME": author,
        "GIT_COMMITTER_EMAIL": email,
    }
    if date:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    _git(repo_path, "commit", "-m", message, env=env)
    return _git(repo_path, "rev-parse", "HEAD").stdout.strip()


@pytest.fixture
def temp_git_repo():
    """Create a temporary git repository with an initial human commit."""
    temp_dir = tempfile.mkdtemp()
    repo_path = Path(temp_dir)

    _git(repo_path, "init", "-b", "main")
    _git(repo_path, "config", "user.email", "test@example.com")
    _git(repo_path, "config", "user.name", "Test User")
    _git(repo_path, "config", "commit.gpgsign", "false")

    git_commit(repo_path, "README.md", "# Test Repo\n", "Initial commit")

    yield repo_path

    shutil.rmtree(temp_dir)


@pytest.fixture
def temp_non_git_dir():
    """Create a temporary directory that is NOT a git repo."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)

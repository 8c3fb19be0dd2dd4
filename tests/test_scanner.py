"""Tests for agent classification and repository scanning."""

import os
from datetime import datetime, timezone
from unittest.mock import patch

from conftest import git_commit

from drift.config import AgentConfig, Config, RepoConfig
from drift.scanner import (
    UNKNOWN_BRANCH,
    is_agent_commit,
    scan_all_repos,
    scan_repo,
    scan_repos,
    should_include,
)

SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _agents(authors=(), patterns=()):
    return AgentConfig(authors=list(authors), message_patterns=list(patterns))


class TestIsAgentCommit:
    """Tests for the agent classifier."""

    def test_author_pattern_matches_email(self):
        agents = _agents(authors=["claude"])
        assert is_agent_commit("Some Bot", "bot@claude.ai", "fix", "", agents) is True

    def test_author_pattern_case_insensitive(self):
        agents = _agents(authors=["Copilot"])
        assert is_agent_commit("github-COPILOT", "x@y.z", "fix", "", agents) is True

    def test_message_pattern_requires_brackets(self):
        agents = _agents(patterns=[r"\[bot\]"])
        assert is_agent_commit("Alice", "alice@example.com", "fix: update (bot)", "", agents) is False
        assert is_agent_commit("Alice", "alice@example.com", "fix: update [bot]", "", agents) is True

    def test_message_pattern_searches_body(self):
        agents = _agents(patterns=["co-authored-by:.*claude"])
        body = "Some details\n\nCo-Authored-By: Claude <noreply@anthropic.com>"
        assert is_agent_commit("Alice", "alice@example.com", "Add feature", body, agents) is True

    def test_no_match(self):
        agents = _agents(authors=["claude"], patterns=[r"\[agent\]"])
        assert is_agent_commit("Alice", "alice@example.com", "Add feature", "", agents) is False

    def test_author_filter_bypasses_classifier(self):
        agents = _agents(authors=["claude"])
        assert should_include("Alice", "alice@example.com", "x", "", agents, author_filter="ALICE")
        assert not should_include("Bob Claude", "bob@claude.ai", "x", "", agents, author_filter="alice")
        assert should_include("Bob Claude", "bob@claude.ai", "x", "", agents)


class TestScanRepo:
    """Tests for scanning real repositories."""

    def _config(self, repo_path, name="api"):
        return Config(
            repos=[RepoConfig(path=str(repo_path), name=name)],
            agents=_agents(authors=["claude"], patterns=[r"\[agent\]"]),
        )

    def test_scan_finds_agent_commits(self, temp_git_repo):
        git_commit(
            temp_git_repo, "auth.py", "# auth\n", "Add auth module",
            author="Claude", email="noreply@anthropic.com", date="2024-01-15T10:00:00+00:00",
        )
        git_commit(
            temp_git_repo, "auth.py", "# auth\n# fix\n", "Fix auth [agent]",
            date="2024-01-15T10:10:00+00:00",
        )
        git_commit(
            temp_git_repo, "notes.md", "notes\n", "Human notes",
            date="2024-01-15T10:20:00+00:00",
        )

        config = self._config(temp_git_repo)
        commits = scan_repo(config.repos[0], config, SINCE)

        assert [c.message for c in commits] == ["Fix auth [agent]", "Add auth module"]
        first = commits[1]
        assert first.author == "Claude"
        assert first.repo == "api"
        assert first.repo_path == str(temp_git_repo.resolve())
        assert first.branch == "main"
        assert first.files_changed == 1
        assert first.insertions == 1
        assert first.deletions == 0
        assert len(first.hash) == 40
        assert first.date == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_scan_prefers_feature_branch(self, temp_git_repo):
        import subprocess

        subprocess.run(
            ["git", "checkout", "-b", "feat/agent"], cwd=temp_git_repo, check=True, capture_output=True
        )
        git_commit(
            temp_git_repo, "feature.py", "x = 1\n", "Add feature",
            author="Claude", email="noreply@anthropic.com", date="2024-01-15T10:00:00+00:00",
        )

        config = self._config(temp_git_repo)
        commits = scan_repo(config.repos[0], config, SINCE)

        assert len(commits) == 1
        assert commits[0].branch == "feat/agent"

    def test_author_filter_includes_humans(self, temp_git_repo):
        git_commit(temp_git_repo, "a.txt", "a\n", "Human change", date="2024-01-15T10:00:00+00:00")

        config = self._config(temp_git_repo)
        commits = scan_repo(config.repos[0], config, SINCE, author="test user")

        # Initial commit is dated now, so it is inside the window too
        assert "Human change" in [c.message for c in commits]
        assert all(c.author == "Test User" for c in commits)

    def test_root_commit_stats_degrade_to_zero(self, temp_git_repo):
        config = self._config(temp_git_repo)
        commits = scan_repo(config.repos[0], config, SINCE, author="Test User")

        root = [c for c in commits if c.message == "Initial commit"][0]
        assert root.files_changed == 0
        assert root.insertions == 0

    def test_branch_lookup_failure_uses_sentinel(self, temp_git_repo):
        git_commit(
            temp_git_repo, "a.txt", "a\n", "Agent change",
            author="Claude", email="c@anthropic.com", date="2024-01-15T10:00:00+00:00",
        )
        config = self._config(temp_git_repo)

        with patch("drift.scanner.git_utils.get_branches_containing", return_value=None):
            commits = scan_repo(config.repos[0], config, SINCE)

        assert commits[0].branch == UNKNOWN_BRANCH

    def test_non_git_dir_yields_nothing(self, temp_non_git_dir):
        config = self._config(temp_non_git_dir)
        assert scan_repo(config.repos[0], config, SINCE) == []


class TestScanRepos:
    """Tests for the concurrent multi-repo scan."""

    def _config(self):
        return Config(
            repos=[
                RepoConfig(path="/tmp/one", name="one"),
                RepoConfig(path="/tmp/two", name="two"),
                RepoConfig(path="/tmp/three", name="three"),
            ],
            agents=_agents(authors=["claude"]),
        )

    def test_failure_is_isolated(self, make_commit):
        def fake_scan(repo, config, since, author=None):
            if repo.name == "two":
                raise RuntimeError("boom")
            return [make_commit(0, repo=repo.name)]

        with patch("drift.scanner.scan_repo", side_effect=fake_scan):
            results = scan_repos(self._config(), SINCE)

        assert [r.repo for r in results] == ["one", "two", "three"]
        assert results[1].ok is False
        assert "boom" in results[1].error
        assert len(results[0].commits) == 1
        assert len(results[2].commits) == 1

    def test_repo_filter(self, make_commit):
        def fake_scan(repo, config, since, author=None):
            return [make_commit(0, repo=repo.name)]

        with patch("drift.scanner.scan_repo", side_effect=fake_scan):
            results = scan_repos(self._config(), SINCE, repo="TWO")

        assert [r.repo for r in results] == ["two"]

    def test_scan_all_repos_newest_first(self, make_commit):
        minutes = {"one": 5, "two": 50, "three": 20}

        def fake_scan(repo, config, since, author=None):
            return [make_commit(minutes[repo.name], repo=repo.name)]

        with patch("drift.scanner.scan_repo", side_effect=fake_scan):
            commits = scan_all_repos(self._config(), SINCE)

        assert [c.repo for c in commits] == ["two", "three", "one"]


def test_non_utf8_author_keeps_repo(temp_git_repo):
    """A Latin-1 author name doesn't hide the rest of the repository."""
    git_commit(
        temp_git_repo, "a.txt", "a\n", "Agent change",
        author=os.fsdecode(b"Ren\xe9 claude"), email="rene@claude.ai", date="2024-01-15T10:00:00+00:00",
    )
    git_commit(
        temp_git_repo, "b.txt", "b\n", "Other change [agent]", date="2024-01-15T10:05:00+00:00",
    )
    config = Config(
        repos=[RepoConfig(path=str(temp_git_repo), name="api")],
        agents=_agents(authors=["claude"], patterns=[r"\[agent\]"]),
    )

    results = scan_repos(config, SINCE)

    assert results[0].ok
    commits = results[0].commits
    assert [c.message for c in commits] == ["Other change [agent]", "Agent change"]
    assert commits[1].author == "Ren\ufffd claude"

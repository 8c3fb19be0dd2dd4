"""Tests for session diff resolution."""

from unittest.mock import patch

from conftest import git_commit

from drift.differ import DIFF_UNAVAILABLE, get_session_diff, get_session_diff_stats
from drift.git_utils import ShortStat
from drift.models import DiffStats, Session


def _empty_session():
    return Session(
        id="api-main-20240115-1000",
        repo="api",
        repo_path="/tmp/api",
        branch="main",
        author="agent1",
        start_time="2024-01-15T10:00:00Z",
        end_time="2024-01-15T10:00:00Z",
    )


def _session_for(repo_path, commits, make_commit):
    built = [make_commit(i, commit_hash=h) for i, h in enumerate(commits)]
    return Session(
        id="api-main-20240115-1000",
        repo="api",
        repo_path=str(repo_path),
        branch="main",
        author="agent1",
        start_time=built[0].date,
        end_time=built[-1].date,
        commits=built,
        files_changed=sum(c.files_changed for c in built),
        insertions=sum(c.insertions for c in built),
        deletions=sum(c.deletions for c in built),
    )


class TestEmptySession:
    def test_diff_without_git(self):
        with patch("drift.differ.git_utils.get_diff_text") as mock_diff:
            assert get_session_diff(_empty_session()) == ""
        mock_diff.assert_not_called()

    def test_stats_without_git(self):
        with patch("drift.differ.git_utils.get_name_only") as mock_names, patch(
            "drift.differ.git_utils.get_shortstat"
        ) as mock_stat:
            stats = get_session_diff_stats(_empty_session())

        assert stats == DiffStats(summary="No changes")
        mock_names.assert_not_called()
        mock_stat.assert_not_called()


class TestFallbacks:
    def test_range_used_first(self, make_commit):
        session = _session_for("/tmp/api", ["a" * 40, "b" * 40], make_commit)

        with patch("drift.differ.git_utils.get_diff_text", return_value="full diff") as mock_diff:
            assert get_session_diff(session) == "full diff"

        mock_diff.assert_called_once()
        assert mock_diff.call_args.args[1] == f"{'a' * 40}^..{'b' * 40}"

    def test_newest_commit_fallback(self, make_commit):
        session = _session_for("/tmp/api", ["a" * 40, "b" * 40], make_commit)

        with patch(
            "drift.differ.git_utils.get_diff_text", side_effect=[None, "newest only"]
        ) as mock_diff:
            assert get_session_diff(session) == "newest only"

        assert mock_diff.call_args.args[1] == f"{'b' * 40}^..{'b' * 40}"

    def test_placeholder_when_everything_fails(self, make_commit):
        session = _session_for("/tmp/api", ["a" * 40], make_commit)

        with patch("drift.differ.git_utils.get_diff_text", return_value=None):
            assert get_session_diff(session) == DIFF_UNAVAILABLE

    def test_stats_fall_back_to_aggregates(self, make_commit):
        session = _session_for("/tmp/api", ["a" * 40, "b" * 40], make_commit)

        with patch("drift.differ.git_utils.get_name_only", return_value=None):
            stats = get_session_diff_stats(session)

        assert stats.files_changed == []
        assert stats.insertions == 20
        assert stats.deletions == 4
        assert stats.summary == "~2 files changed, +20/-4 lines"

    def test_stats_from_range(self, make_commit):
        session = _session_for("/tmp/api", ["a" * 40, "b" * 40], make_commit)

        with patch(
            "drift.differ.git_utils.get_name_only", return_value=["src/a.py", "src/b.py"]
        ), patch("drift.differ.git_utils.get_shortstat", return_value=ShortStat(2, 7, 3)):
            stats = get_session_diff_stats(session)

        assert stats == DiffStats(
            files_changed=["src/a.py", "src/b.py"],
            insertions=7,
            deletions=3,
            summary="2 files changed, +7/-3 lines",
        )


class TestRealRepository:
    def test_session_diff_spans_all_commits(self, temp_git_repo, make_commit):
        first = git_commit(temp_git_repo, "a.py", "one\n", "Add a", date="2024-01-15T10:00:00+00:00")
        second = git_commit(temp_git_repo, "b.py", "two\n", "Add b", date="2024-01-15T10:05:00+00:00")
        session = _session_for(temp_git_repo, [first, second], make_commit)

        diff = get_session_diff(session)
        stats = get_session_diff_stats(session)

        assert "+one" in diff
        assert "+two" in diff
        assert stats.files_changed == ["a.py", "b.py"]
        assert stats.insertions == 2
        assert stats.summary == "2 files changed, +2/-0 lines"

    def test_unreadable_repository(self, temp_git_repo, make_commit):
        commit_hash = git_commit(temp_git_repo, "c.py", "x\n", "Add c")
        session = _session_for(temp_git_repo / "missing", [commit_hash], make_commit)

        assert get_session_diff(session) == DIFF_UNAVAILABLE
        assert get_session_diff_stats(session).summary == "~1 files changed, +10/-2 lines"

    def test_non_utf8_content(self, temp_git_repo, make_commit):
        commit_hash = git_commit(
            temp_git_repo, "menu.txt", b"caf\xe9\n", "Add menu", date="2024-01-15T10:00:00+00:00"
        )
        session = _session_for(temp_git_repo, [commit_hash], make_commit)

        diff = get_session_diff(session)

        assert "+caf\ufffd" in diff
        assert get_session_diff_stats(session).files_changed == ["menu.txt"]

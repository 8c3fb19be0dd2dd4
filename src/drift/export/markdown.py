"""Markdown exporter for agent activity briefings."""

from __future__ import annotations

from datetime import datetime

from drift.models import Session
from drift.timeline import group_by_repo
from drift.utils import format_duration, pluralize, time_context


class BriefingExporter:
    """Export sessions to a Markdown briefing."""

    def export_sessions(self, sessions: list[Session], now: datetime | None = None) -> str:
        """Convert sessions to a Markdown string.

        Args:
            sessions: Sessions ordered newest first.
            now: Reference time for the opening sentence.

        Returns:
            Formatted Markdown string.
        """
        lines = ["# Agent Activity Briefing", ""]

        if not sessions:
            lines.append("No agent activity detected.")
            return "\n".join(lines) + "\n"

        repos = {s.repo for s in sessions}
        authors = {s.author for s in sessions}
        total_commits = sum(s.commit_count for s in sessions)
        total_insertions = sum(s.insertions for s in sessions)
        total_deletions = sum(s.deletions for s in sessions)
        context = time_context(sessions[-1].start_time, now=now)

        lines.append(
            f"{context}, **{len(authors)}** {pluralize(len(authors), 'agent')} worked across "
            f"**{len(repos)}** {pluralize(len(repos), 'repo')}. "
            f"**{total_commits}** {pluralize(total_commits, 'commit')} total "
            f"(+{total_insertions}/-{total_deletions} lines)."
        )
        lines.append("")

        for repo, repo_sessions in group_by_repo(sessions).items():
            lines.append(f"## {repo}")
            lines.append("")

            for session in repo_sessions:
                pr_ref = f" (PR #{session.pr_number})" if session.pr_number else ""
                duration = format_duration(session.start_time, session.end_time)
                lines.append(
                    f"- **{session.branch}**{pr_ref} — {session.commit_count} "
                    f"{pluralize(session.commit_count, 'commit')}, "
                    f"+{session.insertions}/-{session.deletions} lines, {duration} "
                    f"(`{session.id}`)"
                )
                for commit in session.commits:
                    lines.append(f"  - `{commit.hash_short}` {commit.message}")
                lines.append("")

        return "\n".join(lines)

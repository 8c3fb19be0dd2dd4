from datetime import timedelta

from conftest import BASE_TIME

from drift.export import BriefingExporter
from drift.grouper import group_into_sessions


def test_markdown_briefing(make_commit):
    """Test Markdown briefing format."""
    sessions = group_into_sessions(
        [
            make_commit(0, repo="api", message="Add retries (#42)"),
            make_commit(5, repo="api", message="Fix flaky test"),
            make_commit(90, repo="web", author="agent2", message="Update styles"),
        ]
    )

    md = BriefingExporter().export_sessions(sessions, now=BASE_TIME + timedelta(hours=3))

    assert md.startswith("# Agent Activity Briefing\n")
    assert "Over the past 3 hours, **2** agents worked across **2** repos." in md
    assert "**3** commits total (+30/-6 lines)." in md
    assert "## api" in md
    assert "## web" in md
    assert "(PR #42)" in md
    assert "(`api-main-20240115-1000`)" in md
    assert "Fix flaky test" in md
    # Repos appear in session order, newest first
    assert md.index("## web") < md.index("## api")


def test_markdown_briefing_empty():
    md = BriefingExporter().export_sessions([])
    assert md == "# Agent Activity Briefing\n\nNo agent activity detected.\n"

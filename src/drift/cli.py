"""Command-line interface for drift."""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.syntax import Syntax
from rich.table import Table

from drift.config import (
    Config,
    ConfigError,
    add_repo,
    config_exists,
    get_config_path,
    get_default_config,
    load_config,
    save_config,
)
from drift.differ import get_session_diff, get_session_diff_stats
from drift.export import BriefingExporter
from drift.git_utils import is_git_repo
from drift.grouper import group_into_sessions
from drift.scanner import scan_all_repos
from drift.storage import SessionStore
from drift.storage.db import DatabaseError
from drift.storage.store import SessionStoreError
from drift.timeline import filter_sessions, group_by_repo
from drift.utils import (
    format_datetime,
    format_duration,
    format_relative,
    format_time,
    parse_time_window,
    pluralize,
    repo_style,
    time_context,
    truncate,
)
from drift.watch import DEFAULT_INTERVAL, CommitWatcher

if TYPE_CHECKING:
    from drift.models import AgentCommit, DiffStats, Session

console = Console()
error_console = Console(stderr=True)


def _load_config_or_exit() -> Config | None:
    """Load the config, printing a hint when drift hasn't been set up.

    Returns:
        Config with at least one repo, or None if there is nothing to scan.
    """
    if not config_exists():
        console.print("[yellow]No configuration found. Run [cyan]drift init[/cyan] to get started.[/yellow]")
        return None

    try:
        config = load_config()
    except ConfigError as e:
        error_console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    if not config.repos:
        console.print("[yellow]No repos configured. Run [cyan]drift init[/cyan] to add repos.[/yellow]")
        return None

    return config


def _open_store() -> SessionStore:
    try:
        return SessionStore()
    except DatabaseError as e:
        error_console.print(f"[red]Error initializing store:[/red] {e}")
        sys.exit(1)


def _save_sessions(sessions: list[Session]) -> None:
    if not sessions:
        return

    store = _open_store()
    try:
        store.store_sessions(sessions)
    except SessionStoreError as e:
        error_console.print(f"[red]Error saving sessions:[/red] {e}")
        sys.exit(1)
    finally:
        store.close()


def _collect_sessions(
    config: Config,
    since: str | None,
    author: str | None = None,
    repo: str | None = None,
) -> list[Session]:
    """Scan, group and persist sessions for the given window."""
    since_dt = parse_time_window(since or config.general.default_window)

    with console.status(
        f"Scanning {len(config.repos)} {pluralize(len(config.repos), 'repo')}..."
    ):
        commits = scan_all_repos(config, since_dt, author=author, repo=repo)
        sessions = group_into_sessions(commits, gap_minutes=config.general.session_gap_minutes)

    _save_sessions(sessions)
    return sessions


def _changes(insertions: int, deletions: int) -> str:
    return f"[green]+{insertions}[/green]/[red]-{deletions}[/red]"


def print_sessions_table(sessions: list[Session], title: str | None = None) -> None:
    """Print sessions in a formatted table.

    Args:
        sessions: Sessions to display, newest first.
        title: Optional table title.
    """
    if not sessions:
        console.print(
            Panel(
                "[dim]No agent activity found.\n\n"
                "Try adjusting your time window: [cyan]drift scan --since 24h[/cyan]\n"
                "Or add repos with: [cyan]drift init[/cyan][/dim]",
                title="drift",
                border_style="dim",
            )
        )
        return

    repos = {s.repo for s in sessions}
    authors = {s.author for s in sessions}
    total_commits = sum(s.commit_count for s in sessions)
    header = " · ".join(
        [
            f"[bold]{len(sessions)}[/bold] {pluralize(len(sessions), 'session')}",
            f"[bold]{total_commits}[/bold] {pluralize(total_commits, 'commit')}",
            f"[bold]{len(repos)}[/bold] {pluralize(len(repos), 'repo')}",
            f"[bold]{len(authors)}[/bold] {pluralize(len(authors), 'agent')}",
            _changes(sum(s.insertions for s in sessions), sum(s.deletions for s in sessions)),
        ]
    )
    console.print(Panel(header, title=title or "drift — agent activity timeline", border_style="cyan"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Started", style="yellow")
    table.add_column("Repo")
    table.add_column("Branch", style="yellow")
    table.add_column("Author", style="dim")
    table.add_column("Commits", justify="right")
    table.add_column("Changes")
    table.add_column("Summary", max_width=50)

    for session in sessions:
        style = repo_style(session.repo)
        pr_ref = f" [blue]PR #{session.pr_number}[/blue]" if session.pr_number else ""
        first_message = session.commits[0].message if session.commits else ""
        table.add_row(
            escape(session.id),
            f"{format_time(session.start_time)} ({format_relative(session.start_time)})",
            f"[{style}]{escape(session.repo)}[/{style}]",
            f"{escape(session.branch)}{pr_ref}",
            escape(session.author),
            str(session.commit_count),
            f"{_changes(session.insertions, session.deletions)} "
            f"[dim]{session.files_changed} {pluralize(session.files_changed, 'file')}[/dim]",
            escape(truncate(session.pr_title or first_message, 60)),
        )

    console.print(table)


def print_session_detail(session: Session, diff_stats: DiffStats | None = None) -> None:
    """Print a session header, its commits, and files touched."""
    style = repo_style(session.repo)
    header = f"""[bold]Session:[/bold] {escape(session.id)}

[dim]Repo:[/dim]      [{style}]{escape(session.repo)}[/{style}]
[dim]Branch:[/dim]    [yellow]{escape(session.branch)}[/yellow]
[dim]Author:[/dim]    {escape(session.author)}
[dim]Started:[/dim]   {format_datetime(session.start_time)}
[dim]Ended:[/dim]     {format_datetime(session.end_time)}
[dim]Duration:[/dim]  {format_duration(session.start_time, session.end_time)}
[dim]Commits:[/dim]   {session.commit_count}
[dim]Changes:[/dim]   {_changes(session.insertions, session.deletions)} across {session.files_changed} {pluralize(session.files_changed, 'file')}"""

    if session.pr_number:
        header += f"\n[dim]PR:[/dim]        [blue]#{session.pr_number}[/blue] {escape(session.pr_title or '')}"

    console.print(Panel(header, border_style="cyan"))

    console.print("\n[bold dim]Commits:[/bold dim]")
    for commit in session.commits:
        console.print(
            f"  [yellow]{commit.hash_short}[/yellow] {escape(commit.message)} "
            f"[dim]+{commit.insertions}/-{commit.deletions}[/dim]",
            highlight=False,
        )

    if diff_stats is not None and diff_stats.files_changed:
        console.print("\n[bold dim]Files changed:[/bold dim]")
        for path in diff_stats.files_changed:
            console.print(f"    [dim]·[/dim] {escape(path)}", highlight=False)
        console.print(f"\n[dim]{diff_stats.summary}[/dim]")


def print_briefing(sessions: list[Session]) -> None:
    """Print a terminal briefing grouped by repo."""
    if not sessions:
        console.print(
            Panel(
                "[dim]All quiet. No agent activity detected.\n\n"
                "Your agents are either resting or you need to check your config.[/dim]",
                title="Morning Briefing",
                border_style="dim",
            )
        )
        return

    repos = {s.repo for s in sessions}
    authors = {s.author for s in sessions}
    total_commits = sum(s.commit_count for s in sessions)
    opening = (
        f"{time_context(sessions[-1].start_time)}, [bold]{len(authors)}[/bold] "
        f"{pluralize(len(authors), 'agent')} worked across [bold]{len(repos)}[/bold] "
        f"{pluralize(len(repos), 'repo')}. [bold]{total_commits}[/bold] "
        f"{pluralize(total_commits, 'commit')} total "
        f"({_changes(sum(s.insertions for s in sessions), sum(s.deletions for s in sessions))} lines)."
    )

    parts = [opening]
    for repo, repo_sessions in group_by_repo(sessions).items():
        style = repo_style(repo)
        repo_commits = sum(s.commit_count for s in repo_sessions)
        block = (
            f"[{style}]▸ {escape(repo)}[/{style}] — {len(repo_sessions)} "
            f"{pluralize(len(repo_sessions), 'session')}, {repo_commits} "
            f"{pluralize(repo_commits, 'commit')}"
        )
        for session in repo_sessions:
            first_message = session.commits[0].message if session.commits else "unknown work"
            pr_ref = f" · [blue]PR #{session.pr_number}[/blue]" if session.pr_number else ""
            block += (
                f"\n  [dim]·[/dim] {escape(session.author)} · {escape(session.pr_title or first_message)}{pr_ref} · "
                f"{_changes(session.insertions, session.deletions)} across "
                f"{session.files_changed} {pluralize(session.files_changed, 'file')} "
                f"[dim]({format_duration(session.start_time, session.end_time)})[/dim]"
            )
        parts.append(block)

    console.print(Panel("\n\n".join(parts), title="☀ Morning Briefing", border_style="yellow"))


def print_commit(commit: AgentCommit) -> None:
    style = repo_style(commit.repo)
    console.print(
        f"  [dim]{format_time(commit.date)}[/dim] [{style}]\\[{escape(commit.repo)}][/{style}] "
        f"[yellow]{commit.hash_short}[/yellow] {escape(truncate(commit.message, 60))} "
        f"[dim]+{commit.insertions}/-{commit.deletions} {escape(commit.author)}[/dim]",
        highlight=False,
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
    )


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """drift - What did my AI agents do while I was away?"""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        ctx.invoke(scan)


@cli.command()
@click.option("--since", "-s", type=str, help='Time window (e.g. "12h", "24h", "3 days ago")')
@click.option("--author", "-a", type=str, help="Filter by author name (skips agent detection)")
@click.option("--repo", "-r", type=str, help="Filter by repo name")
def scan(since: str | None = None, author: str | None = None, repo: str | None = None) -> None:
    """Scan repos for agent activity."""
    config = _load_config_or_exit()
    if config is None:
        return

    print_sessions_table(_collect_sessions(config, since, author=author, repo=repo))


@cli.command()
@click.option("--since", "-s", type=str, help='Time window (e.g. "12h", "24h")')
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "md"]),
    default="text",
    help="Output format",
)
@click.option("--output", "-o", type=click.Path(), help="Markdown output path")
def briefing(since: str | None, output_format: str, output: str | None) -> None:
    """Generate a morning briefing of agent activity."""
    config = _load_config_or_exit()
    if config is None:
        return

    sessions = _collect_sessions(config, since)

    if output_format == "md":
        content = BriefingExporter().export_sessions(sessions)
        output_path = Path(
            output or f"drift-briefing-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.md"
        )
        output_path.write_text(content)
        console.print(f"[green]Briefing written to {output_path}[/green]")
    else:
        print_briefing(sessions)


@cli.command()
@click.option(
    "--interval",
    "-i",
    type=float,
    default=DEFAULT_INTERVAL,
    help="Seconds between polls",
)
def watch(interval: float) -> None:
    """Live tail of agent activity across all repos."""
    config = _load_config_or_exit()
    if config is None:
        return

    console.print("\n[bold]drift watch[/bold] [dim]— live agent activity[/dim]")
    console.print(
        f"[dim]Watching {len(config.repos)} {pluralize(len(config.repos), 'repo')}. "
        "Press Ctrl+C to stop.[/dim]\n"
    )

    stop_event = threading.Event()
    watcher = CommitWatcher(config, interval=interval)

    try:
        for commit in watcher.watch(stop_event):
            print_commit(commit)
    except KeyboardInterrupt:
        stop_event.set()
        console.print("\n[yellow]Stopped watching.[/yellow]")


@cli.command()
@click.argument("session_id")
def diff(session_id: str) -> None:
    """Show aggregate diff for a session."""
    store = _open_store()
    try:
        session = store.get_session(session_id)
    finally:
        store.close()

    if session is None:
        console.print(f"[yellow]Session not found: {escape(session_id)}[/yellow]")
        console.print("[dim]Run [cyan]drift history[/cyan] to see available sessions.[/dim]")
        return

    print_session_detail(session, get_session_diff_stats(session))

    diff_text = get_session_diff(session)
    if diff_text:
        console.print("\n[dim]Full diff:[/dim]\n")
        console.print(Syntax(diff_text, "diff", theme="monokai", line_numbers=False))


@cli.command("config")
def show_config() -> None:
    """Show current configuration."""
    config_path = get_config_path()

    if not config_exists():
        console.print(f"[yellow]No configuration found at[/yellow] [dim]{config_path}[/dim]")
        console.print("[dim]Run [cyan]drift init[/cyan] to create one.[/dim]")
        return

    try:
        config = load_config()
    except ConfigError as e:
        error_console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    console.print("\n[bold]drift config[/bold]")
    console.print(f"[dim]File: {config_path}[/dim]\n")

    console.print("[bold]General[/bold]")
    console.print(f"  Default window: [cyan]{config.general.default_window}[/cyan]")
    console.print(f"  Theme:          [cyan]{config.general.theme}[/cyan]")
    console.print(f"  Session gap:    [cyan]{config.general.session_gap_minutes:g}m[/cyan]")

    console.print("\n[bold]Repos[/bold]")
    if not config.repos:
        console.print("  [dim]No repos configured[/dim]")
    for repo in config.repos:
        repo_path = escape(str(Path(repo.path).expanduser()))
        console.print(f"  {escape(repo.name)} [dim]{repo_path}[/dim]", highlight=False)

    console.print("\n[bold]Agent Detection[/bold]")
    console.print(f"  Authors:  {', '.join(config.agents.authors)}", highlight=False, markup=False)
    console.print(
        f"  Patterns: {', '.join(config.agents.message_patterns)}", highlight=False, markup=False
    )

    store = _open_store()
    try:
        console.print("\n[bold]History[/bold]")
        console.print(f"  Database: [dim]{store.db.path}[/dim]", highlight=False)
        console.print(f"  Sessions: [cyan]{store.count_sessions()}[/cyan]")
    finally:
        store.close()
    console.print()


@cli.command()
def init() -> None:
    """Interactive setup wizard."""
    console.print("\n[bold]drift init[/bold] [dim]— setup wizard[/dim]\n")

    try:
        config = load_config() if config_exists() else get_default_config()
    except ConfigError as e:
        error_console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    console.print("[dim]Add git repositories to monitor for agent activity.[/dim]")
    console.print("[dim]Enter paths (relative or absolute). Empty line to finish.[/dim]\n")

    while True:
        repo_path = Prompt.ask("[cyan]Repo path[/cyan]", default="", show_default=False).strip()
        if not repo_path:
            break

        full_path = Path(repo_path).expanduser().resolve()
        if not full_path.exists():
            console.print(f"  [red]Path not found: {full_path}[/red]")
            continue
        if not is_git_repo(full_path):
            console.print(f"  [red]Not a git repository: {full_path}[/red]")
            continue

        name = Prompt.ask("[dim]Name[/dim]", default=full_path.name).strip() or full_path.name

        stored_path = repo_path if repo_path.startswith("~") else str(full_path)
        known = len(config.repos)
        try:
            config = add_repo(stored_path, name=name)
        except ConfigError as e:
            error_console.print(f"[red]Error updating config:[/red] {e}")
            sys.exit(1)

        if len(config.repos) == known:
            console.print(f"  [yellow]Already configured: {escape(name)}[/yellow]")
            continue

        console.print(f"  [green]Added: {escape(name)}[/green] [dim]({full_path})[/dim]\n")

    authors = Prompt.ask(
        "[cyan]Agent authors[/cyan]", default=", ".join(config.agents.authors)
    )
    parsed_authors = [a.strip() for a in authors.split(",") if a.strip()]
    if parsed_authors:
        config.agents.authors = parsed_authors

    window = Prompt.ask("[cyan]Default time window[/cyan]", default=config.general.default_window)
    if window.strip():
        config.general.default_window = window.strip()

    config_path = save_config(config)

    # Just instantiating the store initializes the DB
    _open_store().close()

    console.print(f"\n[green]Configuration saved to {config_path}[/green]")
    console.print("[dim]Run [cyan]drift scan[/cyan] to scan for agent activity.[/dim]")
    console.print("[dim]Run [cyan]drift config[/cyan] to view your settings.[/dim]\n")


@cli.command()
@click.option("--limit", "-l", type=int, default=20, help="Number of sessions to show")
@click.option("--repo", "-r", type=str, help="Filter by repo name")
@click.option("--author", "-a", type=str, help="Filter by author name")
def history(limit: int, repo: str | None, author: str | None) -> None:
    """Show past sessions from history."""
    store = _open_store()
    try:
        total = store.count_sessions()
        # Filters apply to the whole history, the limit to what matches
        sessions = store.list_sessions(limit=None if repo or author else limit)
    finally:
        store.close()

    sessions = filter_sessions(sessions, repo=repo, author=author)[:limit]

    if not sessions:
        console.print("\n[dim]No session history found.[/dim]")
        console.print("[dim]Run [cyan]drift scan[/cyan] to scan for agent activity.[/dim]\n")
        return

    print_sessions_table(sessions, title=f"Session history ({len(sessions)} of {total})")


if __name__ == "__main__":
    cli()

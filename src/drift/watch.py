"""Live polling of agent activity across repositories."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import TYPE_CHECKING

from drift.scanner import scan_all_repos
from drift.utils import parse_time_window

if TYPE_CHECKING:
    from drift.config import Config
    from drift.models import AgentCommit

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0
DEFAULT_WINDOW = "5m"

ScanFn = Callable[["Config", datetime], "list[AgentCommit]"]


class CommitWatcher:
    """Polls configured repositories for agent commits not seen before."""

    def __init__(
        self,
        config: Config,
        interval: float = DEFAULT_INTERVAL,
        window: str = DEFAULT_WINDOW,
        scan: ScanFn = scan_all_repos,
    ):
        """Initialize the watcher.

        Args:
            config: Configuration with repos and agent rules.
            interval: Seconds between polls.
            window: Time window scanned on every poll.
            scan: Function returning agent commits since a given time.
        """
        self.config = config
        self.interval = interval
        self.window = window
        self._scan = scan
        self._seen: set[str] = set()
        self._primed = False
        self._stop_event = threading.Event()

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def poll(self) -> list[AgentCommit]:
        """Scan once and return commits that weren't reported before.

        The first poll only records what already exists and returns an
        empty list.

        Returns:
            New commits, oldest first.
        """
        since = parse_time_window(self.window)
        try:
            commits = self._scan(self.config, since)
        except Exception as e:
            logger.warning("Watch poll failed: %s", e)
            return []

        new_commits = []
        for commit in sorted(commits, key=lambda c: c.date):
            if commit.hash in self._seen:
                continue
            self._seen.add(commit.hash)
            new_commits.append(commit)

        if not self._primed:
            self._primed = True
            logger.debug("Primed watcher with %d existing commits", len(new_commits))
            return []

        return new_commits

    def watch(self, stop_event: threading.Event | None = None) -> Iterator[AgentCommit]:
        """Poll continuously and yield new commits as they appear.

        Stops when ``stop_event`` (or :meth:`stop`) is set. The event is
        checked before every poll and interrupts the wait between polls.

        Args:
            stop_event: Optional external cancellation signal.

        Yields:
            New agent commits, oldest first within each poll.
        """
        if stop_event is not None:
            self._stop_event = stop_event
        event = self._stop_event

        while not event.is_set():
            yield from self.poll()

            # Returns early once the event is set
            event.wait(self.interval)

        logger.info("Watcher stopped after seeing %d commits", len(self._seen))

    def stop(self) -> None:
        """Stop a running :meth:`watch` loop."""
        self._stop_event.set()

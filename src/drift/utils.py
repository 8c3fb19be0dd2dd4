"""Time-window parsing and display formatting helpers."""

from __future__ import annotations

import calendar
import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

_SHORTHAND_RE = re.compile(r"^(\d+)(h|d|m|w)$")
_PHRASE_RE = re.compile(r"^(\d+)\s+(hour|day|minute|week|month)s?(\s+ago)?$")

_SHORTHAND_UNITS = {"h": "hour", "d": "day", "m": "minute", "w": "week"}

_ABSOLUTE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%b %d %Y",
    "%d %b %Y",
)

DEFAULT_FALLBACK = timedelta(hours=12)

# Rich styles used to colour repository names
REPO_STYLES = ["cyan", "magenta", "yellow", "green", "blue", "red", "white"]


def _subtract_months(dt: datetime, months: int) -> datetime:
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _subtract(now: datetime, amount: int, unit: str) -> datetime:
    if unit == "month":
        return _subtract_months(now, amount)
    return now - timedelta(**{f"{unit}s": amount})


def _parse_absolute(value: str) -> datetime | None:
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _ABSOLUTE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    # Naive values are local time
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def parse_time_window(window: str, now: datetime | None = None) -> datetime:
    """Convert a time window expression into the datetime it starts at.

    Supported forms:
        Shorthand: 12h, 3d, 30m (minutes), 2w
        Phrases: "3 days", "2 hours ago", "1 month ago"
        Absolute: "2024-01-15", "2024-01-15T10:00:00+00:00", "01/15/2024"

    Anything else falls back to 12 hours ago.

    Args:
        window: Time window expression.
        now: Reference time. Defaults to the current time.

    Returns:
        Timezone-aware start of the window.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    value = window.strip()

    match = _SHORTHAND_RE.match(value)
    if match:
        return _subtract(now, int(match.group(1)), _SHORTHAND_UNITS[match.group(2)])

    match = _PHRASE_RE.match(value)
    if match:
        return _subtract(now, int(match.group(1)), match.group(2))

    parsed = _parse_absolute(value)
    if parsed is not None:
        return parsed

    logger.debug("Unrecognised time window %r, using 12 hours ago", window)
    return now - DEFAULT_FALLBACK


def format_duration(start: datetime, end: datetime) -> str:
    """Format the span between two datetimes, e.g. '45m', '2h 5m', '1d 3h'."""
    minutes = (end - start).total_seconds() / 60

    if minutes < 1:
        return "less than a minute"
    if minutes < 60:
        return f"{round(minutes)}m"
    if minutes < 60 * 24:
        hours = int(minutes // 60)
        mins = round(minutes % 60)
        return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
    return f"{int(minutes // (60 * 24))}d {int((minutes // 60) % 24)}h"


def format_relative(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime as a human-readable age string.

    Returns:
        Human-readable age like 'just now', '2h ago', '3d ago', '1w ago'.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    seconds = (now - dt).total_seconds()

    if seconds < 60:
        return "just now"
    elif seconds < 3600:
        return f"{int(seconds / 60)}m ago"
    elif seconds < 86400:
        return f"{int(seconds / 3600)}h ago"
    elif seconds < 604800:
        return f"{int(seconds / 86400)}d ago"
    else:
        return f"{int(seconds / 604800)}w ago"


def format_time(dt: datetime) -> str:
    return dt.astimezone().strftime("%H:%M")


def format_datetime(dt: datetime) -> str:
    return dt.astimezone().strftime("%b %d, %H:%M")


def time_context(oldest: datetime, now: datetime | None = None) -> str:
    """Describe how far back a briefing reaches, e.g. 'Overnight'."""
    if now is None:
        now = datetime.now(timezone.utc)
    hours_ago = int((now - oldest).total_seconds() // 3600)

    if hours_ago < 1:
        return "In the past hour"
    if hours_ago < 6:
        return f"Over the past {hours_ago} hours"
    if hours_ago < 12:
        return "While you were away"
    if hours_ago < 18:
        return "Overnight"
    if hours_ago < 36:
        return "Since yesterday"
    return f"Over the past {round(hours_ago / 24)} days"


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    if count == 1:
        return singular
    return plural if plural is not None else f"{singular}s"


def truncate(text: str, max_len: int) -> str:
    """Truncate text to ``max_len`` characters with an ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def repo_style(repo: str) -> str:
    """Pick a stable display style for a repository name."""
    digest = hashlib.sha1(repo.encode("utf-8")).digest()
    return REPO_STYLES[digest[0] % len(REPO_STYLES)]

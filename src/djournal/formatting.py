"""Formatting helpers shared by the Markdown and PDF renderers.

All functions are pure: anything time-dependent takes `now` explicitly.
"""

from __future__ import annotations

import math
from datetime import date as Date, datetime, timezone

from .models import DurationTracker

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * 60
MINUTES_PER_WEEK = 7 * 24 * 60

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def parse_reference_date(value: str) -> datetime:
    """Parse a time-since reference into an aware datetime.

    A bare YYYY-MM-DD means midnight UTC; a datetime without an offset is
    taken as server-local time.

    Raises:
        ValueError: If value is not an ISO date or datetime
    """
    value = value.strip()
    if len(value) == 10:
        return datetime.combine(Date.fromisoformat(value), datetime.min.time(), tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def calculate_time_since(reference: datetime, now: datetime) -> str:
    """Break the time from reference to now into y/mo/w/d/h/m.

    Years are 365.25 days and months 30.44 days. Each unit is floored out of
    the running minute total, largest first. This is an approximation of
    calendar time and the exact arithmetic here is part of the output format.
    """
    diff_minutes = math.floor((now - reference).total_seconds() / 60)

    years = math.floor(diff_minutes / (365.25 * 24 * 60))
    diff_minutes -= math.floor(years * 365.25 * 24 * 60)

    months = math.floor(diff_minutes / (30.44 * 24 * 60))
    diff_minutes -= math.floor(months * 30.44 * 24 * 60)

    weeks = math.floor(diff_minutes / MINUTES_PER_WEEK)
    diff_minutes -= weeks * MINUTES_PER_WEEK

    days = math.floor(diff_minutes / MINUTES_PER_DAY)
    diff_minutes -= days * MINUTES_PER_DAY

    hours = math.floor(diff_minutes / MINUTES_PER_HOUR)
    diff_minutes -= hours * MINUTES_PER_HOUR

    minutes = diff_minutes

    parts = []
    if years > 0:
        parts.append(f"{years}y")
    if months > 0:
        parts.append(f"{months}mo")
    if weeks > 0:
        parts.append(f"{weeks}w")
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or not parts:
        parts.append(f"{minutes}m")

    return " ".join(parts)


def time_since_label(reference_date: str, now: datetime) -> str:
    """calculate_time_since for a stored reference string; 'unknown' if unparseable."""
    try:
        reference = parse_reference_date(reference_date)
    except ValueError:
        return "unknown"
    return calculate_time_since(reference, now)


def format_duration(seconds: int) -> str:
    """Seconds as '1h 2m 3s', omitting zero units but never empty."""
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)


def current_elapsed_seconds(tracker: DurationTracker, now: datetime) -> int:
    """Live elapsed seconds: stored time plus the current run, if any."""
    if not tracker.is_timer:
        return tracker.value
    if tracker.is_running and tracker.start_time is not None:
        now_ms = int(now.timestamp() * 1000)
        return (tracker.elapsed_ms + max(0, now_ms - tracker.start_time)) // 1000
    return tracker.value


def format_report_date(value: str) -> str:
    """'2024-03-05' -> '2024-Mar-05'. Unparseable input is returned unchanged."""
    try:
        day = Date.fromisoformat(value[:10])
    except ValueError:
        return value
    return f"{day.year}-{MONTH_ABBREVIATIONS[day.month - 1]}-{day.day:02d}"


def escape_quoted(value) -> str:
    """Escape a value for a double-quoted YAML scalar."""
    return (
        str(value)
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
    )


def capitalize_key(key: str) -> str:
    """Upper-case the first character only ('sleep quality' -> 'Sleep quality')."""
    return key[:1].upper() + key[1:]

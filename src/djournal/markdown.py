"""Markdown export: YAML front matter followed by the day's activity entries."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from .formatting import (
    current_elapsed_seconds,
    escape_quoted,
    format_duration,
    time_since_label,
)
from .models import COUNTER, DayState

DAY_SEPARATOR = "\n---\n\n"

_BARE_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_ -]*")

# Plain scalars YAML resolves to booleans or null
_RESERVED_KEYS = frozenset({"true", "false", "yes", "no", "on", "off", "y", "n", "null"})


def _quote(value) -> str:
    return f'"{escape_quoted(value)}"'


def _key(key: str) -> str:
    """Mapping key, quoted unless it is a plain word that reads back as a string."""
    if _BARE_KEY.fullmatch(key) and not key.endswith(" ") and key.lower() not in _RESERVED_KEYS:
        return key
    return _quote(key)


def render_front_matter(
    state: DayState,
    now: datetime,
    username: Optional[str] = None,
    profile: Optional[dict[str, str]] = None,
) -> str:
    """Render the YAML block, including delimiters."""
    lines = ["---"]

    if username:
        lines.append("# User Information")
        lines.append(f"user: {_quote(username)}")
    lines.append(f"date: {_quote(state.date)}")
    lines.append("")

    if profile:
        lines.append("# Profile Fields")
        lines.append("profile:")
        for key, value in profile.items():
            lines.append(f"  {_key(key)}: {_quote(value)}")
        lines.append("")

    if state.previous_bedtime or state.wake_time:
        lines.append("# Sleep Metrics")
        if state.previous_bedtime:
            lines.append(f"bedtime: {_quote(state.previous_bedtime)}")
        if state.wake_time:
            lines.append(f"wake_time: {_quote(state.wake_time)}")
        lines.append("")

    if state.time_since_trackers:
        lines.append("# Time Since Trackers (persist across days)")
        lines.append("time_since_trackers:")
        for tracker in state.time_since_trackers:
            lines.append(f"  - name: {_quote(tracker.name)}")
            lines.append(f"    date: {_quote(tracker.reference_date)}")
            lines.append(f"    time_since: {_quote(time_since_label(tracker.reference_date, now))}")
        lines.append("")

    if state.duration_trackers:
        lines.append("# Duration Trackers (persist across days)")
        lines.append("duration_trackers:")
        for tracker in state.duration_trackers:
            lines.append(f"  - name: {_quote(tracker.name)}")
            lines.append(f"    type: {_quote(tracker.kind)}")
            lines.append(f"    value: {tracker.value}")
            if tracker.is_timer:
                lines.append(f"    formatted: {_quote(format_duration(tracker.value))}")
                if tracker.is_running and tracker.start_time is not None:
                    lines.append("    is_running: true")
                    live = format_duration(current_elapsed_seconds(tracker, now))
                    lines.append(f"    current_time: {_quote(live)}")
                else:
                    lines.append("    is_running: false")
            elif tracker.kind == COUNTER:
                lines.append(f"    formatted: {_quote(f'{tracker.value} minutes')}")
        lines.append("")

    if state.custom_counters:
        lines.append("# Custom Counters (persist but values reset daily)")
        lines.append("custom_counters:")
        for counter in state.custom_counters:
            lines.append(f"  - name: {_quote(counter.name)}")
            lines.append(f"    value: {counter.value}")
        lines.append("")

    filled_templates = [f for f in state.template_fields if f.value]
    if filled_templates:
        lines.append("# Template Fields (persist template, values reset daily)")
        lines.append("template_fields:")
        for field in filled_templates:
            lines.append(f"  {_key(field.key)}: {_quote(field.value)}")
        lines.append("")

    filled_one_offs = [f for f in state.one_off_fields if f.value]
    if filled_one_offs:
        lines.append("# Daily Fields (do not persist)")
        lines.append("daily_fields:")
        for field in filled_one_offs:
            lines.append(f"  {_key(field.key)}: {_quote(field.value)}")
        lines.append("")

    if state.tasks:
        lines.append("# Daily Tasks")
        lines.append("tasks:")
        for task in state.tasks:
            lines.append(f"  - text: {_quote(task.text)}")
            lines.append(f"    completed: {'true' if task.done else 'false'}")
        lines.append("")

    lines.append("---")
    lines.append("")
    return "\n".join(lines) + "\n"


def render_entries(state: DayState) -> str:
    """Render the activity entries body."""
    content = "# Activity Entries\n\n"
    if not state.entries:
        return content + "_No entries today._\n"

    for entry in state.entries:
        content += f"## {entry.timestamp}\n\n{entry.text}\n\n"
        if entry.image:
            content += f"![Entry Image]({entry.image})\n\n"
    return content


def render_markdown(
    state: DayState,
    now: datetime,
    username: Optional[str] = None,
    profile: Optional[dict[str, str]] = None,
) -> str:
    """Render one day as Markdown with YAML front matter.

    Args:
        state: The day to render
        now: Reference time for time-since trackers and running timers
        username: Display name for the user section
        profile: Profile fields to include

    Returns:
        The complete document. Identical input gives identical output.
    """
    return render_front_matter(state, now, username, profile) + render_entries(state)


def render_markdown_days(
    states: list[DayState],
    now: datetime,
    username: Optional[str] = None,
    profile: Optional[dict[str, str]] = None,
) -> str:
    """Render several days, separated by a horizontal rule (none after the last)."""
    return DAY_SEPARATOR.join(render_markdown(s, now, username, profile) for s in states)

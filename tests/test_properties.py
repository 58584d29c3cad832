"""Property-based tests.

Uses hypothesis to verify algorithmic properties hold for many inputs.
"""

import re
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from hypothesis import given, settings, strategies as st

from djournal.clock import FixedClock
from djournal.config import JournalConfig
from djournal.engine import JournalEngine
from djournal.formatting import calculate_time_since, format_duration
from djournal.markdown import render_markdown
from djournal.models import RetentionPolicy
from djournal.snapshots import retention_cutoff, select_expired

UNIT_MINUTES = {"y": 525960, "mo": 43833.6, "w": 10080, "d": 1440, "h": 60, "m": 1}
UNIT_ORDER = ["y", "mo", "w", "d", "h", "m"]


def make_engine(start: datetime) -> tuple[JournalEngine, FixedClock]:
    """Fresh in-memory engine for each hypothesis example."""
    clock = FixedClock(start)
    config = JournalConfig(data_root=Path("."), storage_backend="memory")
    return JournalEngine(config, clock=clock), clock


dates = st.dates(min_value=date(2023, 1, 1), max_value=date(2024, 12, 31)).map(date.isoformat)


class TestFormatDurationProperties:
    """format_duration always describes exactly the given seconds."""

    @given(seconds=st.integers(min_value=0, max_value=10_000_000))
    def test_parts_sum_to_input(self, seconds):
        text = format_duration(seconds)
        total = 0
        for amount, unit in re.findall(r"(\d+)([hms])", text):
            total += int(amount) * {"h": 3600, "m": 60, "s": 1}[unit]
        assert total == seconds
        assert text


class TestTimeSinceProperties:
    """calculate_time_since for references in the past."""

    @given(minutes=st.integers(min_value=0, max_value=20 * 525960))
    def test_units_ordered_and_positive(self, minutes):
        reference = datetime(2000, 1, 1, tzinfo=timezone.utc)
        text = calculate_time_since(reference, reference + timedelta(minutes=minutes))

        parts = [re.fullmatch(r"(\d+)(y|mo|w|d|h|m)", p) for p in text.split()]
        assert all(parts)
        units = [p.group(2) for p in parts]
        assert units == sorted(units, key=UNIT_ORDER.index)
        assert len(set(units)) == len(units)

    @given(minutes=st.integers(min_value=0, max_value=20 * 525960))
    def test_total_is_close_to_input(self, minutes):
        """Flooring loses less than one minute per unit boundary."""
        reference = datetime(2000, 1, 1, tzinfo=timezone.utc)
        text = calculate_time_since(reference, reference + timedelta(minutes=minutes))
        total = sum(
            int(amount) * UNIT_MINUTES[unit]
            for amount, unit in re.findall(r"(\d+)(y|mo|w|d|h|m)", text)
        )
        assert abs(total - minutes) < 2


class TestRetentionProperties:
    """select_expired against its two rules."""

    @given(
        snapshot_dates=st.sets(dates, max_size=40),
        max_age=st.integers(min_value=0, max_value=400),
        max_count=st.integers(min_value=0, max_value=50),
        today=dates,
    )
    def test_rules_hold(self, snapshot_dates, max_age, max_count, today):
        policy = RetentionPolicy(max_age_days=max_age, max_count=max_count)
        expired = select_expired(list(snapshot_dates), policy, today)
        kept = snapshot_dates - set(expired)

        assert set(expired) <= snapshot_dates
        assert expired == sorted(expired)
        if max_count:
            assert len(kept) <= max_count
        if max_age:
            cutoff = retention_cutoff(today, max_age)
            assert all(d >= cutoff for d in kept)
        # Anything kept is newer than anything dropped by the count rule
        if kept and max_age == 0:
            assert all(e < min(kept) for e in expired)


class TestLifecycleProperties:
    """Day transitions under arbitrary request patterns."""

    @settings(max_examples=30, deadline=None)
    @given(gaps=st.lists(st.integers(min_value=0, max_value=3), min_size=1, max_size=8))
    def test_one_snapshot_per_active_day(self, gaps):
        """Each day that saw a request is archived exactly once when it ends."""
        engine, clock = make_engine(datetime(2024, 1, 1, 10, 0).astimezone())
        visited = []
        for gap in gaps:
            clock.advance(days=gap)
            engine.days.add_entry("u", "ping")
            if not visited or visited[-1] != clock.today():
                visited.append(clock.today())
            assert engine.days.check_date_transition("u") is False

        assert engine.snapshots.list_dates("u") == sorted(visited[:-1], reverse=True)
        assert engine.days.get_state("u").date == visited[-1]

    @settings(max_examples=20, deadline=None)
    @given(texts=st.lists(st.text(min_size=1, max_size=40).filter(str.strip), max_size=5))
    def test_markdown_is_deterministic(self, texts):
        engine, clock = make_engine(datetime(2024, 1, 1, 10, 0).astimezone())
        for text in texts:
            engine.days.add_entry("u", text)
        state = engine.days.get_state("u")
        now = clock.now()
        assert render_markdown(state, now, "u") == render_markdown(state.copy(), now, "u")

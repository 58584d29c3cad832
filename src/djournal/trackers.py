"""Tracker Registry: time-since markers, stopwatch timers and daily counters.

Trackers live on the active DayState so every response carries them, but
they are written through to durable storage on every change: duration and
time-since trackers survive day transitions untouched, and counter names
survive while their values restart at zero.
"""

from __future__ import annotations

import logging
from typing import Optional

from .clock import Clock
from .daily import DailyStateManager
from .errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .models import (
    TIMER,
    CustomCounter,
    DayState,
    DurationTracker,
    TimeSinceTracker,
    generate_id,
)
from .repository import CounterRepository, TrackerRepository

logger = logging.getLogger(__name__)


def _require_name(name: Optional[str], what: str) -> str:
    if name is None or not str(name).strip():
        raise ValidationError(f"{what} name is required")
    return str(name)


def _is_non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class TrackerRegistry:
    """CRUD and state transitions for the three tracker kinds."""

    def __init__(
        self,
        days: DailyStateManager,
        trackers: TrackerRepository,
        counters: CounterRepository,
        clock: Clock,
        strict_counter_values: bool = False,
    ):
        self._days = days
        self._trackers = trackers
        self._counters = counters
        self._clock = clock
        self.strict_counter_values = strict_counter_values

    # ========== Time since ==========

    def create_time_since_tracker(
        self, user_id: str, name: str, reference_date: str
    ) -> tuple[DayState, str]:
        """Add a tracker counting from reference_date (past or future)."""
        name = _require_name(name, "Tracker")
        tracker = TimeSinceTracker(id=generate_id(), name=name, reference_date=reference_date or "")
        with self._days.editing(user_id) as state:
            state.time_since_trackers.append(tracker)
            self._trackers.save_time_since(user_id, tracker)
        return state, tracker.id

    def delete_time_since_tracker(self, user_id: str, tracker_id: str) -> DayState:
        with self._days.editing(user_id) as state:
            state.time_since_trackers = [
                t for t in state.time_since_trackers if t.id != tracker_id
            ]
            self._trackers.delete_time_since(user_id, tracker_id)
        return state

    # ========== Duration timers ==========

    def create_duration_tracker(self, user_id: str, name: str) -> tuple[DayState, str]:
        """Add a stopped timer at zero."""
        name = _require_name(name, "Tracker")
        tracker = DurationTracker(id=generate_id(), name=name, kind=TIMER)
        with self._days.editing(user_id) as state:
            state.duration_trackers.append(tracker)
            self._trackers.save_duration(user_id, tracker)
        return state, tracker.id

    def delete_duration_tracker(self, user_id: str, tracker_id: str) -> DayState:
        with self._days.editing(user_id) as state:
            state.duration_trackers = [t for t in state.duration_trackers if t.id != tracker_id]
            self._trackers.delete_duration(user_id, tracker_id)
        return state

    def start_timer(self, user_id: str, tracker_id: str) -> DayState:
        """Start a timer. A timer that is already running keeps its start time."""
        with self._days.editing(user_id) as state:
            tracker = state.find_duration_tracker(tracker_id)
            if tracker is not None and tracker.is_timer and not tracker.is_running:
                tracker.is_running = True
                tracker.start_time = self._clock.now_ms()
                self._trackers.save_duration(user_id, tracker)
        return state

    def stop_timer(self, user_id: str, tracker_id: str) -> DayState:
        """Stop a running timer and fold the run into elapsed_ms."""
        with self._days.editing(user_id) as state:
            tracker = state.find_duration_tracker(tracker_id)
            if tracker is not None and tracker.is_timer and tracker.is_running:
                if tracker.start_time is not None:
                    tracker.elapsed_ms += max(0, self._clock.now_ms() - tracker.start_time)
                tracker.value = tracker.elapsed_ms // 1000
                tracker.is_running = False
                tracker.start_time = None
                self._trackers.save_duration(user_id, tracker)
        return state

    def reset_timer(self, user_id: str, tracker_id: str) -> DayState:
        with self._days.editing(user_id) as state:
            tracker = state.find_duration_tracker(tracker_id)
            if tracker is not None and tracker.is_timer:
                tracker.value = 0
                tracker.elapsed_ms = 0
                tracker.is_running = False
                tracker.start_time = None
                self._trackers.save_duration(user_id, tracker)
        return state

    def set_manual_time(self, user_id: str, tracker_id: str, elapsed_ms: int) -> DayState:
        """Overwrite a timer's accumulated time and leave it stopped.

        Raises:
            ValidationError: If elapsed_ms is not a non-negative integer
            NotFoundError: If the tracker does not exist
            InvalidStateError: If the tracker is not a timer
        """
        if not _is_non_negative_int(elapsed_ms):
            raise ValidationError("elapsed_ms must be a non-negative integer")

        with self._days.editing(user_id) as state:
            tracker = state.find_duration_tracker(tracker_id)
            if tracker is None:
                raise NotFoundError(f"Tracker not found: {tracker_id}")
            if not tracker.is_timer:
                raise InvalidStateError("Manual time only works with timer trackers")

            tracker.elapsed_ms = elapsed_ms
            tracker.value = elapsed_ms // 1000
            tracker.start_time = self._clock.now_ms() - elapsed_ms
            tracker.is_running = False
            self._trackers.save_duration(user_id, tracker)
            logger.info("Set manual time for tracker %s: %dms", tracker_id, elapsed_ms)
        return state

    # ========== Custom counters ==========

    def create_custom_counter(self, user_id: str, name: str) -> tuple[DayState, str]:
        """Register a counter name and add it to today at zero.

        Raises:
            ValidationError: If name is empty
            ConflictError: If the user already has a counter with this name
        """
        name = _require_name(name, "Counter")
        if any(c.name == name for c in self._counters.list_counters(user_id)):
            raise ConflictError(f"Counter already exists: {name}")

        with self._days.editing(user_id) as state:
            definition = self._counters.create_counter(user_id, name)
            state.custom_counters.append(CustomCounter(id=definition.id, name=name, value=0))
        return state, definition.id

    def delete_custom_counter(self, user_id: str, counter_id: str) -> DayState:
        with self._days.editing(user_id) as state:
            state.custom_counters = [c for c in state.custom_counters if c.id != counter_id]
            self._counters.delete_counter(user_id, counter_id)
        return state

    def increment_counter(self, user_id: str, counter_id: str) -> DayState:
        with self._days.editing(user_id) as state:
            counter = state.find_counter(counter_id)
            if counter is not None:
                counter.value += 1
        return state

    def decrement_counter(self, user_id: str, counter_id: str) -> DayState:
        """Decrease by one, never below zero."""
        with self._days.editing(user_id) as state:
            counter = state.find_counter(counter_id)
            if counter is not None and counter.value > 0:
                counter.value -= 1
        return state

    def set_counter_value(self, user_id: str, counter_id: str, value) -> DayState:
        """Set a counter to a non-negative integer.

        Anything else is ignored, or rejected with ValidationError when
        strict_counter_values is enabled.
        """
        if not _is_non_negative_int(value):
            if self.strict_counter_values:
                raise ValidationError("Counter value must be a non-negative integer")
            logger.debug("Ignoring invalid counter value %r for %s", value, counter_id)
            return self._days.get_state(user_id)

        with self._days.editing(user_id) as state:
            counter = state.find_counter(counter_id)
            if counter is not None:
                counter.value = value
        return state

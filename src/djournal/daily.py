"""Daily State Manager: the per-user "today" record and the day transition.

There is no scheduler. Every operation that reads or writes today's state
goes through `check_date_transition` first, so a transition happens lazily
on the first request after midnight, however many days have passed.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Iterator, Optional

from .clock import Clock
from .errors import ConflictError, PayloadTooLargeError, ValidationError
from .models import (
    ActivityEntry,
    CustomCounter,
    DayState,
    Field,
    FieldTemplate,
    Task,
    generate_id,
)
from .repository import (
    CounterRepository,
    DayStateRepository,
    FieldTemplateRepository,
    TrackerRepository,
)
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024


def needs_transition(stored_date: str, current_date: str) -> bool:
    """True when the active state belongs to a different calendar day."""
    return stored_date != current_date


def decoded_image_size(image: str) -> int:
    """Size in bytes a base64 payload decodes to (upper bound)."""
    return math.ceil(len(image) * 3 / 4)


def _require_text(value: Optional[str], what: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{what} is required")
    return str(value)


class DailyStateManager:
    """Owns each user's active DayState."""

    def __init__(
        self,
        states: DayStateRepository,
        snapshots: SnapshotStore,
        trackers: TrackerRepository,
        templates: FieldTemplateRepository,
        counters: CounterRepository,
        clock: Clock,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ):
        self._states = states
        self._snapshots = snapshots
        self._trackers = trackers
        self._templates = templates
        self._counters = counters
        self._clock = clock
        self.max_image_bytes = max_image_bytes

    # ========== Lifecycle ==========

    def _fresh_state(self, user_id: str, date: str) -> DayState:
        """Build a new day: empty fields from templates, zeroed counters, persistent trackers."""
        return DayState(
            date=date,
            template_fields=[
                Field(id=generate_id(), key=t.key, value="")
                for t in self._templates.list_templates(user_id)
            ],
            custom_counters=[
                CustomCounter(id=c.id, name=c.name, value=0)
                for c in self._counters.list_counters(user_id)
            ],
            time_since_trackers=self._trackers.list_time_since(user_id),
            duration_trackers=self._trackers.list_duration(user_id),
        )

    def _current(self, user_id: str) -> tuple[DayState, bool]:
        """Load today's state, creating or transitioning it as needed.

        Returns:
            (state, transitioned)
        """
        today = self._clock.today()
        state = self._states.load_active(user_id)

        if state is None:
            state = self._fresh_state(user_id, today)
            self._states.save_active(user_id, state)
            logger.debug("Initialized day %s for user %s", today, user_id)
            return state, False

        if not needs_transition(state.date, today):
            return state, False

        logger.info("Date transition detected for user %s: %s -> %s", user_id, state.date, today)
        self._snapshots.archive(user_id, state)
        self._snapshots.apply_retention(user_id)

        state = self._fresh_state(user_id, today)
        self._states.save_active(user_id, state)
        return state, True

    def check_date_transition(self, user_id: str) -> bool:
        """Archive and reset the active day if the calendar date moved on.

        Safe to call repeatedly: once today's state exists, further calls
        change nothing. Returns True only when a transition happened.
        """
        _, transitioned = self._current(user_id)
        return transitioned

    def get_state(self, user_id: str) -> DayState:
        """Today's state for the user, after the transition check."""
        state, _ = self._current(user_id)
        return state

    @contextmanager
    def editing(self, user_id: str) -> Iterator[DayState]:
        """Yield today's state and persist it if the block completes."""
        state = self.get_state(user_id)
        yield state
        self._states.save_active(user_id, state)

    def save_snapshot(self, user_id: str) -> str:
        """Archive the current day now. Returns its date."""
        state = self.get_state(user_id)
        self._snapshots.archive(user_id, state)
        self._snapshots.apply_retention(user_id)
        return state.date

    # ========== Sleep and entries ==========

    def update_sleep(
        self,
        user_id: str,
        previous_bedtime: Optional[str] = None,
        wake_time: Optional[str] = None,
    ) -> DayState:
        """Set whichever sleep times are given."""
        with self.editing(user_id) as state:
            if previous_bedtime is not None:
                state.previous_bedtime = previous_bedtime
            if wake_time is not None:
                state.wake_time = wake_time
        return state

    def add_entry(self, user_id: str, text: str, image: Optional[str] = None) -> DayState:
        """Append an activity entry stamped with the local 24-hour time.

        Raises:
            ValidationError: If text is empty
            PayloadTooLargeError: If the decoded image exceeds the limit
        """
        text = _require_text(text, "Entry text")
        if image and decoded_image_size(image) > self.max_image_bytes:
            limit_mb = self.max_image_bytes // (1024 * 1024)
            raise PayloadTooLargeError(f"Image size exceeds {limit_mb}MB limit")

        with self.editing(user_id) as state:
            state.entries.append(ActivityEntry(
                id=generate_id(),
                timestamp=self._clock.now().strftime("%H:%M:%S"),
                text=text,
                image=image or None,
            ))
        return state

    def delete_entry(self, user_id: str, entry_id: str) -> DayState:
        with self.editing(user_id) as state:
            state.entries = [e for e in state.entries if e.id != entry_id]
        return state

    # ========== Template fields ==========

    def list_template_fields(self, user_id: str) -> list[FieldTemplate]:
        return self._templates.list_templates(user_id)

    def create_template_field(self, user_id: str, key: str) -> tuple[list[FieldTemplate], DayState]:
        """Register a field name and add it, empty, to today.

        Raises:
            ValidationError: If key is empty
            ConflictError: If the user already has a template with this key
        """
        key = _require_text(key, "Field key")
        if any(t.key == key for t in self._templates.list_templates(user_id)):
            raise ConflictError(f"Template already exists: {key}")

        with self.editing(user_id) as state:
            self._templates.create_template(user_id, key)
            if not any(f.key == key for f in state.template_fields):
                state.template_fields.append(Field(id=generate_id(), key=key, value=""))
        return self._templates.list_templates(user_id), state

    def delete_template_field(
        self, user_id: str, template_id: str
    ) -> tuple[list[FieldTemplate], DayState]:
        """Remove a template and today's field with the same key."""
        with self.editing(user_id) as state:
            template = next(
                (t for t in self._templates.list_templates(user_id) if t.id == template_id),
                None,
            )
            if template is not None:
                self._templates.delete_template(user_id, template.key)
                # Daily field ids differ from template ids; match on key
                state.template_fields = [
                    f for f in state.template_fields if f.key != template.key
                ]
        return self._templates.list_templates(user_id), state

    def set_template_field_value(self, user_id: str, key: str, value: str) -> DayState:
        with self.editing(user_id) as state:
            field = next((f for f in state.template_fields if f.key == key), None)
            if field is not None:
                field.value = value or ""
        return state

    # ========== One-off fields ==========

    def set_one_off_field(self, user_id: str, key: str, value: str = "") -> DayState:
        """Create or update a field that exists for today only."""
        key = _require_text(key, "Field key")
        with self.editing(user_id) as state:
            field = next((f for f in state.one_off_fields if f.key == key), None)
            if field is not None:
                field.value = value or ""
            else:
                state.one_off_fields.append(Field(id=generate_id(), key=key, value=value or ""))
        return state

    def delete_one_off_field(self, user_id: str, field_id: str) -> DayState:
        with self.editing(user_id) as state:
            state.one_off_fields = [f for f in state.one_off_fields if f.id != field_id]
        return state

    # ========== Tasks ==========

    def add_task(self, user_id: str, text: str) -> DayState:
        text = _require_text(text, "Task text")
        with self.editing(user_id) as state:
            state.tasks.append(Task(id=generate_id(), text=text, done=False))
        return state

    def toggle_task(self, user_id: str, task_id: str) -> DayState:
        with self.editing(user_id) as state:
            for task in state.tasks:
                if task.id == task_id:
                    task.done = not task.done
        return state

    def delete_task(self, user_id: str, task_id: str) -> DayState:
        with self.editing(user_id) as state:
            state.tasks = [t for t in state.tasks if t.id != task_id]
        return state

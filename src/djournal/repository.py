"""Repository interfaces for journal persistence, plus an in-memory backend.

The Daily State Manager, Snapshot Store and Tracker Registry only talk to
these interfaces. `SQLiteStorage` in `database.py` is the durable backend;
`InMemoryStorage` keeps everything in dictionaries and is used by tests and
throwaway sessions.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Optional

from .errors import ConflictError
from .models import (
    CounterDefinition,
    DayState,
    DurationTracker,
    FieldTemplate,
    RetentionPolicy,
    TimeSinceTracker,
    generate_id,
)


class DayStateRepository(ABC):
    """Holds the one active DayState per user."""

    @abstractmethod
    def load_active(self, user_id: str) -> Optional[DayState]:
        """Return the active state, or None if the user has none yet."""

    @abstractmethod
    def save_active(self, user_id: str, state: DayState) -> None:
        """Replace the active state."""


class SnapshotRepository(ABC):
    """Archived DayStates keyed by (user, date)."""

    @abstractmethod
    def put_snapshot(self, user_id: str, state: DayState) -> None:
        """Store an independent copy of state under state.date, replacing any existing one."""

    @abstractmethod
    def get_snapshot(self, user_id: str, date: str) -> Optional[DayState]:
        """Return a copy of the snapshot for date, or None."""

    @abstractmethod
    def snapshot_dates(self, user_id: str) -> list[str]:
        """All archived dates, ascending."""

    @abstractmethod
    def snapshots_between(self, user_id: str, start: str, end: str) -> list[DayState]:
        """Snapshots with start <= date <= end, ascending by date."""

    @abstractmethod
    def delete_snapshot(self, user_id: str, date: str) -> bool:
        """Delete one snapshot. Returns False if it did not exist."""


class TrackerRepository(ABC):
    """Durable storage for trackers that outlive the day."""

    @abstractmethod
    def list_time_since(self, user_id: str) -> list[TimeSinceTracker]:
        pass

    @abstractmethod
    def save_time_since(self, user_id: str, tracker: TimeSinceTracker) -> None:
        pass

    @abstractmethod
    def delete_time_since(self, user_id: str, tracker_id: str) -> None:
        pass

    @abstractmethod
    def list_duration(self, user_id: str) -> list[DurationTracker]:
        pass

    @abstractmethod
    def save_duration(self, user_id: str, tracker: DurationTracker) -> None:
        pass

    @abstractmethod
    def delete_duration(self, user_id: str, tracker_id: str) -> None:
        pass


class FieldTemplateRepository(ABC):
    """Field Template Registry: per-user field names."""

    @abstractmethod
    def list_templates(self, user_id: str) -> list[FieldTemplate]:
        pass

    @abstractmethod
    def create_template(self, user_id: str, key: str) -> FieldTemplate:
        """Create a template. Raises ConflictError if the key exists."""

    @abstractmethod
    def delete_template(self, user_id: str, key: str) -> bool:
        pass


class CounterRepository(ABC):
    """Counter Registry: per-user counter names."""

    @abstractmethod
    def list_counters(self, user_id: str) -> list[CounterDefinition]:
        pass

    @abstractmethod
    def create_counter(self, user_id: str, name: str) -> CounterDefinition:
        """Create a counter. Raises ConflictError if the name exists."""

    @abstractmethod
    def delete_counter(self, user_id: str, counter_id: str) -> bool:
        pass


class ProfileRepository(ABC):
    """User-supplied key/value pairs included in exports."""

    @abstractmethod
    def get_profile(self, user_id: str) -> dict[str, str]:
        pass

    @abstractmethod
    def set_profile_field(self, user_id: str, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete_profile_field(self, user_id: str, key: str) -> None:
        pass


class RetentionRepository(ABC):
    """Per-user snapshot retention settings."""

    @abstractmethod
    def get_policy(self, user_id: str) -> Optional[RetentionPolicy]:
        pass

    @abstractmethod
    def set_policy(self, user_id: str, policy: RetentionPolicy) -> None:
        pass


class Storage(
    DayStateRepository,
    SnapshotRepository,
    TrackerRepository,
    FieldTemplateRepository,
    CounterRepository,
    ProfileRepository,
    RetentionRepository,
):
    """A backend implementing every repository."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryStorage(Storage):
    """Dictionary-backed storage. Copies on the way in and out."""

    def __init__(self):
        self._active: dict[str, DayState] = {}
        self._snapshots: dict[str, dict[str, DayState]] = {}
        self._time_since: dict[str, list[TimeSinceTracker]] = {}
        self._duration: dict[str, list[DurationTracker]] = {}
        self._templates: dict[str, list[FieldTemplate]] = {}
        self._counters: dict[str, list[CounterDefinition]] = {}
        self._profiles: dict[str, dict[str, str]] = {}
        self._policies: dict[str, RetentionPolicy] = {}

    # ========== Active day ==========

    def load_active(self, user_id: str) -> Optional[DayState]:
        state = self._active.get(user_id)
        return state.copy() if state is not None else None

    def save_active(self, user_id: str, state: DayState) -> None:
        self._active[user_id] = state.copy()

    # ========== Snapshots ==========

    def put_snapshot(self, user_id: str, state: DayState) -> None:
        self._snapshots.setdefault(user_id, {})[state.date] = state.copy()

    def get_snapshot(self, user_id: str, date: str) -> Optional[DayState]:
        state = self._snapshots.get(user_id, {}).get(date)
        return state.copy() if state is not None else None

    def snapshot_dates(self, user_id: str) -> list[str]:
        return sorted(self._snapshots.get(user_id, {}))

    def snapshots_between(self, user_id: str, start: str, end: str) -> list[DayState]:
        history = self._snapshots.get(user_id, {})
        return [history[d].copy() for d in sorted(history) if start <= d <= end]

    def delete_snapshot(self, user_id: str, date: str) -> bool:
        history = self._snapshots.get(user_id, {})
        if date not in history:
            return False
        del history[date]
        return True

    # ========== Trackers ==========

    def list_time_since(self, user_id: str) -> list[TimeSinceTracker]:
        return copy.deepcopy(self._time_since.get(user_id, []))

    def save_time_since(self, user_id: str, tracker: TimeSinceTracker) -> None:
        self._upsert(self._time_since.setdefault(user_id, []), copy.deepcopy(tracker))

    def delete_time_since(self, user_id: str, tracker_id: str) -> None:
        trackers = self._time_since.get(user_id, [])
        self._time_since[user_id] = [t for t in trackers if t.id != tracker_id]

    def list_duration(self, user_id: str) -> list[DurationTracker]:
        return copy.deepcopy(self._duration.get(user_id, []))

    def save_duration(self, user_id: str, tracker: DurationTracker) -> None:
        self._upsert(self._duration.setdefault(user_id, []), copy.deepcopy(tracker))

    def delete_duration(self, user_id: str, tracker_id: str) -> None:
        trackers = self._duration.get(user_id, [])
        self._duration[user_id] = [t for t in trackers if t.id != tracker_id]

    @staticmethod
    def _upsert(items: list, item) -> None:
        for i, existing in enumerate(items):
            if existing.id == item.id:
                items[i] = item
                return
        items.append(item)

    # ========== Templates and counters ==========

    def list_templates(self, user_id: str) -> list[FieldTemplate]:
        return list(self._templates.get(user_id, []))

    def create_template(self, user_id: str, key: str) -> FieldTemplate:
        templates = self._templates.setdefault(user_id, [])
        if any(t.key == key for t in templates):
            raise ConflictError(f"Template already exists: {key}")
        template = FieldTemplate(id=generate_id(), key=key)
        templates.append(template)
        return template

    def delete_template(self, user_id: str, key: str) -> bool:
        templates = self._templates.get(user_id, [])
        remaining = [t for t in templates if t.key != key]
        self._templates[user_id] = remaining
        return len(remaining) != len(templates)

    def list_counters(self, user_id: str) -> list[CounterDefinition]:
        return list(self._counters.get(user_id, []))

    def create_counter(self, user_id: str, name: str) -> CounterDefinition:
        counters = self._counters.setdefault(user_id, [])
        if any(c.name == name for c in counters):
            raise ConflictError(f"Counter already exists: {name}")
        counter = CounterDefinition(id=generate_id(), name=name)
        counters.append(counter)
        return counter

    def delete_counter(self, user_id: str, counter_id: str) -> bool:
        counters = self._counters.get(user_id, [])
        remaining = [c for c in counters if c.id != counter_id]
        self._counters[user_id] = remaining
        return len(remaining) != len(counters)

    # ========== Profile and retention ==========

    def get_profile(self, user_id: str) -> dict[str, str]:
        return dict(self._profiles.get(user_id, {}))

    def set_profile_field(self, user_id: str, key: str, value: str) -> None:
        self._profiles.setdefault(user_id, {})[key] = value

    def delete_profile_field(self, user_id: str, key: str) -> None:
        self._profiles.get(user_id, {}).pop(key, None)

    def get_policy(self, user_id: str) -> Optional[RetentionPolicy]:
        policy = self._policies.get(user_id)
        return copy.copy(policy) if policy is not None else None

    def set_policy(self, user_id: str, policy: RetentionPolicy) -> None:
        self._policies[user_id] = copy.copy(policy)

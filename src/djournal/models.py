"""Data models for the daily state, trackers, snapshots and exports."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


TIMER = "timer"
COUNTER = "counter"

MARKDOWN = "markdown"
PDF = "pdf"

CONTENT_TYPES = {
    MARKDOWN: "text/markdown; charset=utf-8",
    PDF: "application/pdf",
}

EXTENSIONS = {
    MARKDOWN: "md",
    PDF: "pdf",
}


def generate_id() -> str:
    """Generate an opaque id for fields, tasks, entries and trackers."""
    return uuid.uuid4().hex[:12]


@dataclass
class Field:
    """A named value on the day: template-backed or one-off."""
    id: str
    key: str
    value: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "key": self.key, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> Field:
        return cls(id=str(data["id"]), key=data["key"], value=data.get("value") or "")


@dataclass
class Task:
    """A to-do item scoped to one day."""
    id: str
    text: str
    done: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "done": self.done}

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        # Older states stored the flag as "completed"
        done = data.get("done", data.get("completed", False))
        return cls(id=str(data["id"]), text=data["text"], done=bool(done))


@dataclass
class ActivityEntry:
    """A timestamped log line, optionally carrying a base64 image."""
    id: str
    timestamp: str
    text: str
    image: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "text": self.text,
            "image": self.image,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ActivityEntry:
        return cls(
            id=str(data["id"]),
            timestamp=data.get("timestamp", ""),
            text=data.get("text", ""),
            image=data.get("image") or None,
        )


@dataclass
class CustomCounter:
    """A daily counter; the name persists, the value resets each day."""
    id: str
    name: str
    value: int = 0

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> CustomCounter:
        return cls(id=str(data["id"]), name=data["name"], value=int(data.get("value", 0)))


@dataclass
class TimeSinceTracker:
    """Marks a reference date; displayed as the time elapsed since it."""
    id: str
    name: str
    reference_date: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "referenceDate": self.reference_date}

    @classmethod
    def from_dict(cls, data: dict) -> TimeSinceTracker:
        reference = data.get("referenceDate", data.get("date", ""))
        return cls(id=str(data["id"]), name=data["name"], reference_date=reference)


@dataclass
class DurationTracker:
    """A stopwatch with accumulated elapsed time.

    start_time is epoch milliseconds while running. value is the stored
    elapsed time in whole seconds.
    """
    id: str
    name: str
    kind: str = TIMER
    is_running: bool = False
    start_time: Optional[int] = None
    elapsed_ms: int = 0
    value: int = 0

    @property
    def is_timer(self) -> bool:
        return self.kind == TIMER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.kind,
            "isRunning": self.is_running,
            "startTime": self.start_time,
            "elapsedMs": self.elapsed_ms,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DurationTracker:
        start_time = data.get("startTime")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            kind=data.get("type", TIMER),
            is_running=bool(data.get("isRunning", False)),
            start_time=int(start_time) if start_time is not None else None,
            elapsed_ms=int(data.get("elapsedMs") or 0),
            value=int(data.get("value") or 0),
        )


@dataclass
class DayState:
    """Everything one user tracked for one calendar date."""
    date: str
    previous_bedtime: str = ""
    wake_time: str = ""
    template_fields: list[Field] = field(default_factory=list)
    one_off_fields: list[Field] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    entries: list[ActivityEntry] = field(default_factory=list)
    custom_counters: list[CustomCounter] = field(default_factory=list)
    time_since_trackers: list[TimeSinceTracker] = field(default_factory=list)
    duration_trackers: list[DurationTracker] = field(default_factory=list)

    def copy(self) -> DayState:
        """Deep, independent copy of this state."""
        return copy.deepcopy(self)

    def find_duration_tracker(self, tracker_id: str) -> Optional[DurationTracker]:
        return next((t for t in self.duration_trackers if t.id == tracker_id), None)

    def find_counter(self, counter_id: str) -> Optional[CustomCounter]:
        return next((c for c in self.custom_counters if c.id == counter_id), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape returned by every state operation."""
        return {
            "date": self.date,
            "previousBedtime": self.previous_bedtime,
            "wakeTime": self.wake_time,
            "templateFields": [f.to_dict() for f in self.template_fields],
            "oneOffFields": [f.to_dict() for f in self.one_off_fields],
            "tasks": [t.to_dict() for t in self.tasks],
            "entries": [e.to_dict() for e in self.entries],
            "customCounters": [c.to_dict() for c in self.custom_counters],
            "timeSinceTrackers": [t.to_dict() for t in self.time_since_trackers],
            "durationTrackers": [t.to_dict() for t in self.duration_trackers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DayState:
        return cls(
            date=data["date"],
            previous_bedtime=data.get("previousBedtime") or "",
            wake_time=data.get("wakeTime") or "",
            template_fields=[Field.from_dict(f) for f in data.get("templateFields", [])],
            one_off_fields=[Field.from_dict(f) for f in data.get("oneOffFields", [])],
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            entries=[ActivityEntry.from_dict(e) for e in data.get("entries", [])],
            custom_counters=[CustomCounter.from_dict(c) for c in data.get("customCounters", [])],
            time_since_trackers=[
                TimeSinceTracker.from_dict(t) for t in data.get("timeSinceTrackers", [])
            ],
            duration_trackers=[
                DurationTracker.from_dict(t) for t in data.get("durationTrackers", [])
            ],
        )


@dataclass
class FieldTemplate:
    """A field name that is instantiated with an empty value every day."""
    id: str
    key: str

    def to_dict(self) -> dict:
        return {"id": self.id, "key": self.key}


@dataclass
class CounterDefinition:
    """A counter name that persists across days."""
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass
class RetentionPolicy:
    """Snapshot retention rules. Zero disables a rule."""
    max_age_days: int = 30
    max_count: int = 100

    def to_dict(self) -> dict:
        return {"maxDays": self.max_age_days, "maxCount": self.max_count}


@dataclass
class UserIdentity:
    """The caller as supplied by the identity provider."""
    user_id: str
    username: Optional[str] = None
    is_admin: bool = False


@dataclass
class ExportArtifact:
    """A rendered export ready to be delivered as a file attachment."""
    filename: str
    content_type: str
    content: bytes
    dates: list[str] = field(default_factory=list)

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "size": len(self.content),
            "dates": self.dates,
        }

"""Export Orchestrator: turns today or archived days into downloadable files."""

from __future__ import annotations

import logging
from datetime import date as Date
from pathlib import Path
from typing import Optional

from .clock import Clock
from .daily import DailyStateManager
from .errors import NotFoundError, ValidationError
from .locking import locked_atomic_write_bytes
from .markdown import render_markdown_days
from .models import (
    CONTENT_TYPES,
    EXTENSIONS,
    MARKDOWN,
    PDF,
    DayState,
    ExportArtifact,
    UserIdentity,
)
from .pdf import render_pdf
from .repository import ProfileRepository
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)

TODAY = "today"


def _check_format(fmt: str) -> str:
    if fmt not in CONTENT_TYPES:
        raise ValidationError(f"Unknown export format: {fmt} (expected one of: {MARKDOWN}, {PDF})")
    return fmt


def _check_date(value: Optional[str], name: str) -> str:
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        Date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date, got {value!r}") from e
    return value


def build_filename(dates: list[str], fmt: str, start: Optional[str] = None, end: Optional[str] = None) -> str:
    """`{date}.{ext}` for one day, `{start}_to_{end}.{ext}` for a span."""
    ext = EXTENSIONS[fmt]
    if len(dates) == 1:
        return f"{dates[0]}.{ext}"
    return f"{start or dates[0]}_to_{end or dates[-1]}.{ext}"


def write_artifact(artifact: ExportArtifact, directory: Path) -> Path:
    """Write an artifact into directory and return the file path."""
    path = directory / artifact.filename
    locked_atomic_write_bytes(path, artifact.content)
    logger.info("Wrote export %s (%d bytes)", path, len(artifact.content))
    return path


class ExportOrchestrator:
    """Selects days, renders them, and names the result."""

    def __init__(
        self,
        days: DailyStateManager,
        snapshots: SnapshotStore,
        profiles: ProfileRepository,
        clock: Clock,
    ):
        self._days = days
        self._snapshots = snapshots
        self._profiles = profiles
        self._clock = clock

    def render(self, identity: UserIdentity, states: list[DayState], fmt: str) -> bytes:
        """Render states for identity in the given format."""
        now = self._clock.now()
        profile = self._profiles.get_profile(identity.user_id)
        if fmt == PDF:
            return render_pdf(states, now, identity.username, profile)
        return render_markdown_days(states, now, identity.username, profile).encode("utf-8")

    def export_day(self, identity: UserIdentity, day: str = TODAY, fmt: str = MARKDOWN) -> ExportArtifact:
        """Export a single day.

        "today" archives the current state first and renders the archived
        copy, so the export always matches what the snapshot holds.

        Raises:
            ValidationError: If day or fmt is malformed
            NotFoundError: If no snapshot exists for a past day
        """
        fmt = _check_format(fmt)
        if day == TODAY:
            date = self._days.save_snapshot(identity.user_id)
        else:
            date = _check_date(day, "date")
            self._days.check_date_transition(identity.user_id)

        state = self._snapshots.get(identity.user_id, date)
        content = self.render(identity, [state], fmt)
        logger.info("Exported %s as %s for user %s", date, fmt, identity.user_id)
        return ExportArtifact(
            filename=build_filename([date], fmt),
            content_type=CONTENT_TYPES[fmt],
            content=content,
            dates=[date],
        )

    def export_range(
        self, identity: UserIdentity, start: Optional[str], end: Optional[str], fmt: str = MARKDOWN
    ) -> ExportArtifact:
        """Export every archived day with start <= date <= end.

        Raises:
            ValidationError: If a bound is missing or malformed
            NotFoundError: If no snapshot falls in the range
        """
        fmt = _check_format(fmt)
        start = _check_date(start, "start_date")
        end = _check_date(end, "end_date")
        self._days.check_date_transition(identity.user_id)

        found = self._snapshots.get_range(identity.user_id, start, end)
        if not found:
            raise NotFoundError(f"No snapshots found between {start} and {end}")

        dates = [date for date, _ in found]
        content = self.render(identity, [state for _, state in found], fmt)
        logger.info("Exported %d day(s) %s..%s as %s for user %s", len(dates), start, end, fmt, identity.user_id)
        return ExportArtifact(
            filename=build_filename(dates, fmt, start, end),
            content_type=CONTENT_TYPES[fmt],
            content=content,
            dates=dates,
        )

    def range_data(self, identity: UserIdentity, start: Optional[str], end: Optional[str]) -> list[dict]:
        """The archived days in range as `{date, data}` records, ascending.

        Raises:
            ValidationError: If a bound is missing or malformed
        """
        start = _check_date(start, "start_date")
        end = _check_date(end, "end_date")
        self._days.check_date_transition(identity.user_id)
        return [
            {"date": date, "data": state.to_dict()}
            for date, state in self._snapshots.get_range(identity.user_id, start, end)
        ]

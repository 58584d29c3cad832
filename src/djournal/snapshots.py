"""Snapshot store: archived days and their retention policy."""

from __future__ import annotations

import logging
from datetime import date as Date, timedelta
from typing import Optional

from .clock import Clock
from .errors import NotFoundError, ValidationError
from .models import DayState, RetentionPolicy
from .repository import RetentionRepository, SnapshotRepository

logger = logging.getLogger(__name__)


def retention_cutoff(today: str, max_age_days: int) -> str:
    """Oldest date kept by the age rule. Dates strictly before it are dropped."""
    return (Date.fromisoformat(today) - timedelta(days=max_age_days)).isoformat()


def select_expired(dates: list[str], policy: RetentionPolicy, today: str) -> list[str]:
    """Dates a retention pass would delete, oldest first.

    The age rule runs first, then the count rule keeps the newest
    max_count of what remains.
    """
    remaining = sorted(dates)
    expired: list[str] = []

    if policy.max_age_days > 0:
        cutoff = retention_cutoff(today, policy.max_age_days)
        expired.extend(d for d in remaining if d < cutoff)
        remaining = [d for d in remaining if d >= cutoff]

    if policy.max_count > 0 and len(remaining) > policy.max_count:
        newest_first = sorted(remaining, reverse=True)
        expired.extend(newest_first[policy.max_count:])

    return sorted(expired)


def _validate_limit(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a non-negative integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a non-negative integer") from e
    if number < 0:
        raise ValidationError(f"{name} must be a non-negative integer")
    return number


class SnapshotStore:
    """Durable archive of completed days."""

    def __init__(
        self,
        snapshots: SnapshotRepository,
        settings: RetentionRepository,
        clock: Clock,
        default_policy: Optional[RetentionPolicy] = None,
    ):
        self._snapshots = snapshots
        self._settings = settings
        self._clock = clock
        self._default_policy = default_policy or RetentionPolicy()

    def archive(self, user_id: str, state: DayState) -> None:
        """Store an independent copy of state under its own date."""
        self._snapshots.put_snapshot(user_id, state.copy())
        logger.info("Saved snapshot for user %s on %s", user_id, state.date)

    def get_policy(self, user_id: str) -> RetentionPolicy:
        policy = self._settings.get_policy(user_id)
        if policy is None:
            return RetentionPolicy(
                max_age_days=self._default_policy.max_age_days,
                max_count=self._default_policy.max_count,
            )
        return policy

    def set_policy(
        self,
        user_id: str,
        max_age_days: Optional[int] = None,
        max_count: Optional[int] = None,
    ) -> tuple[RetentionPolicy, list[str]]:
        """Update the given limits, then run a cleanup pass.

        Returns:
            (policy, remaining dates descending)
        """
        policy = self.get_policy(user_id)
        if max_age_days is not None:
            policy.max_age_days = _validate_limit(max_age_days, "max_age_days")
        if max_count is not None:
            policy.max_count = _validate_limit(max_count, "max_count")

        self._settings.set_policy(user_id, policy)
        self.apply_retention(user_id, policy)
        return policy, self.list_dates(user_id)

    def apply_retention(self, user_id: str, policy: Optional[RetentionPolicy] = None) -> list[str]:
        """Delete snapshots outside the policy. Returns the deleted dates."""
        if policy is None:
            policy = self.get_policy(user_id)

        expired = select_expired(
            self._snapshots.snapshot_dates(user_id), policy, self._clock.today()
        )
        for date in expired:
            self._snapshots.delete_snapshot(user_id, date)
            logger.info("Deleted snapshot %s for user %s (retention %s)", date, user_id, policy)
        return expired

    def list_dates(self, user_id: str) -> list[str]:
        """Archived dates, newest first."""
        return sorted(self._snapshots.snapshot_dates(user_id), reverse=True)

    def get(self, user_id: str, date: str) -> DayState:
        state = self._snapshots.get_snapshot(user_id, date)
        if state is None:
            raise NotFoundError(f"Snapshot not found: {date}")
        return state

    def get_range(self, user_id: str, start: str, end: str) -> list[tuple[str, DayState]]:
        """Snapshots with start <= date <= end, ascending.

        ISO dates are zero-padded, so string comparison orders them correctly.
        """
        return [(s.date, s) for s in self._snapshots.snapshots_between(user_id, start, end)]

    def delete_one(self, user_id: str, date: str) -> list[str]:
        """Delete a snapshot. Returns the remaining dates, newest first."""
        if not self._snapshots.delete_snapshot(user_id, date):
            raise NotFoundError(f"Snapshot not found: {date}")
        logger.info("Manually deleted snapshot %s for user %s", date, user_id)
        return self.list_dates(user_id)

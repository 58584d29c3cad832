"""Journal engine: wires storage, clock and the journal components together."""

from __future__ import annotations

import logging
from typing import Optional

from .clock import Clock, SystemClock
from .config import JournalConfig
from .daily import DailyStateManager
from .database import SQLiteStorage
from .errors import ValidationError
from .export import ExportOrchestrator
from .repository import InMemoryStorage, Storage
from .snapshots import SnapshotStore
from .trackers import TrackerRegistry

logger = logging.getLogger(__name__)


def open_storage(config: JournalConfig) -> Storage:
    """Create the storage backend named by the config."""
    if config.storage_backend == "memory":
        return InMemoryStorage()
    return SQLiteStorage(config.get_database_path())


class JournalEngine:
    """Entry point for every journal operation.

    Components are exposed as attributes (`days`, `trackers`, `snapshots`,
    `exports`) and share one storage and one clock.
    """

    def __init__(
        self,
        config: JournalConfig,
        clock: Optional[Clock] = None,
        storage: Optional[Storage] = None,
    ):
        self.config = config
        self.clock = clock or SystemClock()
        self.storage = storage or open_storage(config)

        self.snapshots = SnapshotStore(
            self.storage, self.storage, self.clock, config.default_retention
        )
        self.days = DailyStateManager(
            states=self.storage,
            snapshots=self.snapshots,
            trackers=self.storage,
            templates=self.storage,
            counters=self.storage,
            clock=self.clock,
            max_image_bytes=config.max_image_bytes,
        )
        self.trackers = TrackerRegistry(
            self.days,
            self.storage,
            self.storage,
            self.clock,
            strict_counter_values=config.strict_counter_values,
        )
        self.exports = ExportOrchestrator(self.days, self.snapshots, self.storage, self.clock)
        logger.debug("Journal engine ready (backend=%s)", config.storage_backend)

    # ========== Profile ==========

    def get_profile(self, user_id: str) -> dict[str, str]:
        return self.storage.get_profile(user_id)

    def set_profile_field(self, user_id: str, key: str, value: str) -> dict[str, str]:
        """Set a profile field and return the whole profile."""
        if not key or not str(key).strip():
            raise ValidationError("Profile field key is required")
        self.storage.set_profile_field(user_id, key, "" if value is None else str(value))
        return self.storage.get_profile(user_id)

    def delete_profile_field(self, user_id: str, key: str) -> dict[str, str]:
        self.storage.delete_profile_field(user_id, key)
        return self.storage.get_profile(user_id)

    def close(self) -> None:
        self.storage.close()

    def __enter__(self) -> JournalEngine:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

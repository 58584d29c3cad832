"""SQLite storage backend.

One database file holds every user's active day, archived snapshots,
trackers, registries and settings. Day states are stored as JSON documents
so an archived snapshot is a frozen, independent copy by construction.

Database location: <data_root>/data/djournal.db
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
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
from .repository import Storage

logger = logging.getLogger(__name__)


class SQLiteStorage(Storage):
    """SQLite implementation of every journal repository."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """Open (and create if needed) the journal database.

        Args:
            db_path: Path to the SQLite file
        """
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path))
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.execute("PRAGMA journal_mode = WAL")
        return self._connection

    def _ensure_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        conn = self._get_connection()

        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            self._init_schema(conn)
        else:
            cursor = conn.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            if row is None or row[0] < self.SCHEMA_VERSION:
                self._migrate_schema(conn, row[0] if row else 0)

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            INSERT INTO schema_version (version) VALUES (1);

            -- The mutable "today" record, one per user
            CREATE TABLE IF NOT EXISTS active_days (
                user_id TEXT PRIMARY KEY,
                date TEXT NOT NULL,             -- YYYY-MM-DD
                state TEXT NOT NULL,            -- DayState JSON
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            -- Archived days
            CREATE TABLE IF NOT EXISTS snapshots (
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                state TEXT NOT NULL,
                saved_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, date)
            );

            CREATE TABLE IF NOT EXISTS time_since_trackers (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                reference_date TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS duration_trackers (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                type TEXT DEFAULT 'timer',
                is_running INTEGER DEFAULT 0,
                start_time INTEGER,             -- epoch milliseconds
                elapsed_ms INTEGER DEFAULT 0,
                value INTEGER DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS field_templates (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                key TEXT NOT NULL,
                UNIQUE (user_id, key)
            );

            CREATE TABLE IF NOT EXISTS custom_counters (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                UNIQUE (user_id, name)
            );

            CREATE TABLE IF NOT EXISTS profile_fields (
                user_id TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (user_id, key)
            );

            CREATE TABLE IF NOT EXISTS snapshot_settings (
                user_id TEXT PRIMARY KEY,
                max_days INTEGER DEFAULT 30,
                max_count INTEGER DEFAULT 100
            );

            CREATE INDEX IF NOT EXISTS idx_time_since_user ON time_since_trackers(user_id);
            CREATE INDEX IF NOT EXISTS idx_duration_user ON duration_trackers(user_id);
        """)
        conn.commit()

    def _migrate_schema(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Migrate schema from an older version."""
        # Only version 1 exists so far
        if from_version < 1:
            self._init_schema(conn)

    def close(self) -> None:
        """Close the database connection.

        Checkpoints the WAL and switches back to DELETE journal mode so all
        file handles are released.
        """
        if self._connection is not None:
            try:
                self._connection.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                self._connection.execute("PRAGMA journal_mode = DELETE")
            except sqlite3.Error as e:
                logger.debug("Ignoring error while closing %s: %s", self.db_path, e)
            self._connection.close()
            self._connection = None

    # ========== Active day ==========

    def load_active(self, user_id: str) -> Optional[DayState]:
        row = self._get_connection().execute(
            "SELECT state FROM active_days WHERE user_id = ?", (user_id,)
        ).fetchone()
        return DayState.from_dict(json.loads(row["state"])) if row else None

    def save_active(self, user_id: str, state: DayState) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO active_days (user_id, date, state, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id) DO UPDATE SET
                date = excluded.date,
                state = excluded.state,
                updated_at = CURRENT_TIMESTAMP
            """,
            (user_id, state.date, json.dumps(state.to_dict())),
        )
        conn.commit()

    # ========== Snapshots ==========

    def put_snapshot(self, user_id: str, state: DayState) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO snapshots (user_id, date, state, saved_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id, date) DO UPDATE SET
                state = excluded.state,
                saved_at = CURRENT_TIMESTAMP
            """,
            (user_id, state.date, json.dumps(state.to_dict())),
        )
        conn.commit()

    def get_snapshot(self, user_id: str, date: str) -> Optional[DayState]:
        row = self._get_connection().execute(
            "SELECT state FROM snapshots WHERE user_id = ? AND date = ?", (user_id, date)
        ).fetchone()
        return DayState.from_dict(json.loads(row["state"])) if row else None

    def snapshot_dates(self, user_id: str) -> list[str]:
        rows = self._get_connection().execute(
            "SELECT date FROM snapshots WHERE user_id = ? ORDER BY date ASC", (user_id,)
        ).fetchall()
        return [row["date"] for row in rows]

    def snapshots_between(self, user_id: str, start: str, end: str) -> list[DayState]:
        rows = self._get_connection().execute(
            """
            SELECT state FROM snapshots
            WHERE user_id = ? AND date >= ? AND date <= ?
            ORDER BY date ASC
            """,
            (user_id, start, end),
        ).fetchall()
        return [DayState.from_dict(json.loads(row["state"])) for row in rows]

    def delete_snapshot(self, user_id: str, date: str) -> bool:
        conn = self._get_connection()
        cursor = conn.execute(
            "DELETE FROM snapshots WHERE user_id = ? AND date = ?", (user_id, date)
        )
        conn.commit()
        return cursor.rowcount > 0

    # ========== Trackers ==========

    def list_time_since(self, user_id: str) -> list[TimeSinceTracker]:
        rows = self._get_connection().execute(
            "SELECT id, name, reference_date FROM time_since_trackers WHERE user_id = ? ORDER BY rowid",
            (user_id,),
        ).fetchall()
        return [
            TimeSinceTracker(id=row["id"], name=row["name"], reference_date=row["reference_date"])
            for row in rows
        ]

    def save_time_since(self, user_id: str, tracker: TimeSinceTracker) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO time_since_trackers (id, user_id, name, reference_date)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                reference_date = excluded.reference_date
            """,
            (tracker.id, user_id, tracker.name, tracker.reference_date),
        )
        conn.commit()

    def delete_time_since(self, user_id: str, tracker_id: str) -> None:
        conn = self._get_connection()
        conn.execute(
            "DELETE FROM time_since_trackers WHERE user_id = ? AND id = ?", (user_id, tracker_id)
        )
        conn.commit()

    def list_duration(self, user_id: str) -> list[DurationTracker]:
        rows = self._get_connection().execute(
            """
            SELECT id, name, type, is_running, start_time, elapsed_ms, value
            FROM duration_trackers WHERE user_id = ? ORDER BY rowid
            """,
            (user_id,),
        ).fetchall()
        return [
            DurationTracker(
                id=row["id"],
                name=row["name"],
                kind=row["type"],
                is_running=bool(row["is_running"]),
                start_time=row["start_time"],
                elapsed_ms=row["elapsed_ms"] or 0,
                value=row["value"] or 0,
            )
            for row in rows
        ]

    def save_duration(self, user_id: str, tracker: DurationTracker) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO duration_trackers (id, user_id, name, type, is_running, start_time, elapsed_ms, value)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                type = excluded.type,
                is_running = excluded.is_running,
                start_time = excluded.start_time,
                elapsed_ms = excluded.elapsed_ms,
                value = excluded.value
            """,
            (
                tracker.id,
                user_id,
                tracker.name,
                tracker.kind,
                1 if tracker.is_running else 0,
                tracker.start_time,
                tracker.elapsed_ms,
                tracker.value,
            ),
        )
        conn.commit()

    def delete_duration(self, user_id: str, tracker_id: str) -> None:
        conn = self._get_connection()
        conn.execute(
            "DELETE FROM duration_trackers WHERE user_id = ? AND id = ?", (user_id, tracker_id)
        )
        conn.commit()

    # ========== Templates and counters ==========

    def list_templates(self, user_id: str) -> list[FieldTemplate]:
        rows = self._get_connection().execute(
            "SELECT id, key FROM field_templates WHERE user_id = ? ORDER BY rowid", (user_id,)
        ).fetchall()
        return [FieldTemplate(id=row["id"], key=row["key"]) for row in rows]

    def create_template(self, user_id: str, key: str) -> FieldTemplate:
        template = FieldTemplate(id=generate_id(), key=key)
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO field_templates (id, user_id, key) VALUES (?, ?, ?)",
                (template.id, user_id, key),
            )
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ConflictError(f"Template already exists: {key}") from e
        conn.commit()
        return template

    def delete_template(self, user_id: str, key: str) -> bool:
        conn = self._get_connection()
        cursor = conn.execute(
            "DELETE FROM field_templates WHERE user_id = ? AND key = ?", (user_id, key)
        )
        conn.commit()
        return cursor.rowcount > 0

    def list_counters(self, user_id: str) -> list[CounterDefinition]:
        rows = self._get_connection().execute(
            "SELECT id, name FROM custom_counters WHERE user_id = ? ORDER BY rowid", (user_id,)
        ).fetchall()
        return [CounterDefinition(id=row["id"], name=row["name"]) for row in rows]

    def create_counter(self, user_id: str, name: str) -> CounterDefinition:
        counter = CounterDefinition(id=generate_id(), name=name)
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO custom_counters (id, user_id, name) VALUES (?, ?, ?)",
                (counter.id, user_id, name),
            )
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ConflictError(f"Counter already exists: {name}") from e
        conn.commit()
        return counter

    def delete_counter(self, user_id: str, counter_id: str) -> bool:
        conn = self._get_connection()
        cursor = conn.execute(
            "DELETE FROM custom_counters WHERE user_id = ? AND id = ?", (user_id, counter_id)
        )
        conn.commit()
        return cursor.rowcount > 0

    # ========== Profile and retention ==========

    def get_profile(self, user_id: str) -> dict[str, str]:
        rows = self._get_connection().execute(
            "SELECT key, value FROM profile_fields WHERE user_id = ? ORDER BY rowid", (user_id,)
        ).fetchall()
        return {row["key"]: row["value"] for row in rows}

    def set_profile_field(self, user_id: str, key: str, value: str) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO profile_fields (user_id, key, value)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id, key) DO UPDATE SET value = excluded.value
            """,
            (user_id, key, value),
        )
        conn.commit()

    def delete_profile_field(self, user_id: str, key: str) -> None:
        conn = self._get_connection()
        conn.execute("DELETE FROM profile_fields WHERE user_id = ? AND key = ?", (user_id, key))
        conn.commit()

    def get_policy(self, user_id: str) -> Optional[RetentionPolicy]:
        row = self._get_connection().execute(
            "SELECT max_days, max_count FROM snapshot_settings WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return RetentionPolicy(max_age_days=row["max_days"], max_count=row["max_count"])

    def set_policy(self, user_id: str, policy: RetentionPolicy) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO snapshot_settings (user_id, max_days, max_count)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                max_days = excluded.max_days,
                max_count = excluded.max_count
            """,
            (user_id, policy.max_age_days, policy.max_count),
        )
        conn.commit()

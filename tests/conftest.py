"""Shared pytest fixtures for djournal tests."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from djournal.clock import FixedClock
from djournal.config import JournalConfig
from djournal.engine import JournalEngine
from djournal.models import UserIdentity

USER = "alice"


def local(*args) -> datetime:
    """A server-local aware datetime."""
    return datetime(*args).astimezone()


@pytest.fixture
def temp_root():
    """Create a temporary data root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    """A frozen clock at 2024-01-10 09:30 local time."""
    return FixedClock(local(2024, 1, 10, 9, 30, 0))


@pytest.fixture
def config(temp_root):
    """In-memory configuration."""
    return JournalConfig(data_root=temp_root, storage_backend="memory")


@pytest.fixture
def engine(config, clock):
    """Engine over in-memory storage and the frozen clock."""
    eng = JournalEngine(config, clock=clock)
    yield eng
    eng.close()


@pytest.fixture
def sqlite_engine(temp_root, clock):
    """Engine over a SQLite file in the temp root."""
    eng = JournalEngine(JournalConfig(data_root=temp_root), clock=clock)
    yield eng
    eng.close()


@pytest.fixture
def identity():
    return UserIdentity(user_id=USER, username="Alice")


@pytest.fixture
def archive_days(engine, clock):
    """Create one archived snapshot per given date by walking the clock forward.

    Each archived day gets one entry naming its date. The clock is left on
    the last date.
    """

    def _archive(dates):
        for date in sorted(dates):
            clock.set(local(*map(int, date.split("-")), 12, 0, 0))
            engine.days.add_entry(USER, f"entry on {date}")
            engine.days.save_snapshot(USER)
        return sorted(dates)

    return _archive

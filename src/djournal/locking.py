"""File locking for export files written by the CLI."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on a sibling `.lock` file.

    Raises:
        portalocker.LockException: If the lock is not acquired within timeout
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


@contextmanager
def atomic_write(path: Path) -> Generator:
    """Yield a binary handle to a temp file that replaces path on success."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "wb") as f:
            yield f
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def locked_atomic_write_bytes(path: Path, content: bytes, timeout: float = 10.0) -> None:
    """Write content to path under the file lock with an atomic rename."""
    with file_lock(path, timeout=timeout):
        with atomic_write(path) as f:
            f.write(content)

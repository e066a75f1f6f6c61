"""
Single-instance guard for maintenance runs.
"""

from __future__ import annotations

import fcntl
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, TextIO

DEFAULT_LOCK_PATH = Path("/run/lock/array-maintenance.lock")


class InstanceLockError(RuntimeError):
    """Raised when another instance is already running."""


@dataclass
class InstanceLock:
    """Holds the lock file handle to keep the lock alive."""

    handle: Optional[TextIO]
    path: Path
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def held(self) -> bool:
        return not self._released

    def release(self) -> None:
        """Remove the lock file and drop the lock; safe to call repeatedly."""
        if self._released:
            return
        self._released = True
        handle, self.handle = self.handle, None
        try:
            self.path.unlink(missing_ok=True)
        finally:
            # closing the descriptor drops the flock
            if handle is not None:
                handle.close()


def _lock_file(handle: TextIO) -> None:
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as exc:
        raise InstanceLockError("Another instance is already running.") from exc


def _write_lock_info(handle: TextIO) -> None:
    handle.seek(0)
    handle.truncate()
    info = [
        f"pid={os.getpid()}",
        f"python={sys.executable}",
        f"argv={' '.join(sys.argv)}",
    ]
    handle.write("\n".join(info))
    handle.flush()


def _open_lock_file(lock_path: Path) -> TextIO:
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        return lock_path.open("a+", encoding="utf-8")
    except OSError as exc:
        raise InstanceLockError(f"Cannot open lock file {lock_path}: {exc}") from exc


def _is_current(handle: TextIO, lock_path: Path) -> bool:
    # a releasing holder unlinks the file; a lock on the orphan guards nothing
    try:
        on_disk = os.stat(lock_path)
    except FileNotFoundError:
        return False
    held = os.fstat(handle.fileno())
    return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)


def acquire_instance_lock(lock_path: Path, attempts: int = 3) -> InstanceLock:
    """Acquire a non-blocking instance lock or raise InstanceLockError."""
    for _ in range(attempts):
        handle = _open_lock_file(lock_path)
        try:
            _lock_file(handle)
            if _is_current(handle, lock_path):
                _write_lock_info(handle)
                return InstanceLock(handle=handle, path=lock_path)
        except Exception:
            handle.close()
            raise
        handle.close()
    raise InstanceLockError(f"Lock file {lock_path} keeps being replaced; another instance is starting.")


@contextmanager
def hold_instance_lock(lock_path: Path) -> Iterator[InstanceLock]:
    """Hold the instance lock for the duration of the block."""
    lock = acquire_instance_lock(lock_path)
    try:
        yield lock
    finally:
        lock.release()

import os
from pathlib import Path

import pytest

from utils import instance_guard
from utils.instance_guard import InstanceLockError, acquire_instance_lock, hold_instance_lock


def test_second_acquire_fails_immediately(tmp_path: Path) -> None:
    lock_path = tmp_path / "run" / "maintenance.lock"

    first = acquire_instance_lock(lock_path)
    try:
        with pytest.raises(InstanceLockError):
            acquire_instance_lock(lock_path)
    finally:
        first.release()


def test_release_is_idempotent_and_removes_file(tmp_path: Path) -> None:
    lock_path = tmp_path / "maintenance.lock"

    lock = acquire_instance_lock(lock_path)
    assert lock_path.exists()
    assert "pid=" in lock_path.read_text(encoding="utf-8")

    lock.release()
    lock.release()

    assert not lock.held
    assert not lock_path.exists()


def test_lock_can_be_taken_again_after_release(tmp_path: Path) -> None:
    lock_path = tmp_path / "maintenance.lock"

    acquire_instance_lock(lock_path).release()
    again = acquire_instance_lock(lock_path)
    again.release()


def test_context_manager_releases_on_error(tmp_path: Path) -> None:
    lock_path = tmp_path / "maintenance.lock"

    with pytest.raises(RuntimeError):
        with hold_instance_lock(lock_path) as lock:
            assert lock.held
            raise RuntimeError("boom")

    assert not lock_path.exists()
    acquire_instance_lock(lock_path).release()


def test_lock_taken_on_unlinked_file_is_retried(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    lock_path = tmp_path / "maintenance.lock"
    first = acquire_instance_lock(lock_path)
    real_lock_file = instance_guard._lock_file

    def release_first_then_lock(handle) -> None:
        # the holder exits between our open() and our flock()
        first.release()
        real_lock_file(handle)

    monkeypatch.setattr(instance_guard, "_lock_file", release_first_then_lock)
    second = acquire_instance_lock(lock_path)
    monkeypatch.undo()
    try:
        assert os.fstat(second.handle.fileno()).st_ino == lock_path.stat().st_ino
        with pytest.raises(InstanceLockError):
            acquire_instance_lock(lock_path)
    finally:
        second.release()


def test_gives_up_when_lock_file_keeps_vanishing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    lock_path = tmp_path / "maintenance.lock"
    real_lock_file = instance_guard._lock_file

    def unlink_then_lock(handle) -> None:
        lock_path.unlink()
        real_lock_file(handle)

    monkeypatch.setattr(instance_guard, "_lock_file", unlink_then_lock)

    with pytest.raises(InstanceLockError, match="replaced"):
        acquire_instance_lock(lock_path)

"""Tests for the cross-process home lock."""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

import pytest

import chvm_core.lock as lock_module
from chvm_core.errors import LockTimeoutError
from chvm_core.lock import acquire_lock, is_locked, lock_path, read_lock_state, release_lock, with_lock


def _write_lock(home: Path, *, pid: int, age_seconds: float) -> Path:
    path = lock_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    timestamp = int((time.time() - age_seconds) * 1000)
    path.write_text(json.dumps({"pid": pid, "timestamp": timestamp}))
    return path


def test_acquire_writes_pid_and_release_removes(tmp_path: Path) -> None:
    handle = acquire_lock(tmp_path)
    state = read_lock_state(lock_path(tmp_path))
    assert state is not None
    assert state.pid == os.getpid()
    assert is_locked(tmp_path)

    release_lock(handle)
    release_lock(handle)
    assert not lock_path(tmp_path).exists()
    assert not is_locked(tmp_path)


def test_live_lock_blocks_until_timeout(tmp_path: Path) -> None:
    _write_lock(tmp_path, pid=424242, age_seconds=0)
    started = time.monotonic()
    with pytest.raises(LockTimeoutError, match="424242"):
        acquire_lock(tmp_path, timeout=0.3)
    assert time.monotonic() - started >= 0.25
    assert read_lock_state(lock_path(tmp_path)).pid == 424242


def test_stale_lock_is_reclaimed(tmp_path: Path) -> None:
    _write_lock(tmp_path, pid=424242, age_seconds=120)
    assert not is_locked(tmp_path, stale_timeout=60)
    assert lock_path(tmp_path).exists()

    with acquire_lock(tmp_path, timeout=0.5, stale_timeout=60) as handle:
        assert handle.state.pid == os.getpid()
        assert read_lock_state(lock_path(tmp_path)).pid == os.getpid()
    assert not lock_path(tmp_path).exists()
    assert [p.name for p in tmp_path.iterdir()] == []


def test_unparseable_lock_uses_file_age(tmp_path: Path) -> None:
    path = lock_path(tmp_path)
    path.write_text("garbage")
    old = time.time() - 300
    os.utime(path, (old, old))

    handle = acquire_lock(tmp_path, timeout=0.5, stale_timeout=60)
    handle.release()


def test_with_lock_releases_on_error(tmp_path: Path) -> None:
    def boom() -> None:
        assert is_locked(tmp_path)
        raise ValueError("inside")

    with pytest.raises(ValueError, match="inside"):
        with_lock(tmp_path, boom)
    assert not lock_path(tmp_path).exists()


def test_with_lock_serializes_contenders(tmp_path: Path) -> None:
    active = []
    overlaps = []
    guard = threading.Lock()

    def critical() -> None:
        with guard:
            active.append(1)
            if len(active) > 1:
                overlaps.append(1)
        time.sleep(0.05)
        with guard:
            active.pop()

    threads = [threading.Thread(target=with_lock, args=(tmp_path, critical), kwargs={"timeout": 5}) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []
    assert not lock_path(tmp_path).exists()


def test_heartbeat_keeps_lock_fresh(tmp_path: Path) -> None:
    handle = acquire_lock(tmp_path, heartbeat=0.05)
    try:
        first = handle.state.timestamp
        deadline = time.monotonic() + 2
        while handle.state.timestamp == first and time.monotonic() < deadline:
            time.sleep(0.02)
        assert handle.state.timestamp > first
        assert read_lock_state(lock_path(tmp_path)) == handle.state
    finally:
        handle.release()
    assert not lock_path(tmp_path).exists()


def test_release_leaves_lock_taken_over_by_another_owner(tmp_path: Path) -> None:
    handle = acquire_lock(tmp_path)
    _write_lock(tmp_path, pid=777, age_seconds=0)
    handle.release()
    assert read_lock_state(lock_path(tmp_path)).pid == 777


def test_reclaim_does_not_remove_lock_taken_after_staleness_check(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_lock(tmp_path, pid=424242, age_seconds=120)
    original = lock_module._stale_identity
    winners: list = []

    def interleaved(path: Path, stale_timeout: float):
        seen = original(path, stale_timeout)
        if not winners:
            winners.append(None)
            # a second contender reclaims and locks before this one renames
            winners[0] = acquire_lock(tmp_path, timeout=0.5, stale_timeout=60)
        return seen

    monkeypatch.setattr(lock_module, "_stale_identity", interleaved)

    with pytest.raises(LockTimeoutError):
        acquire_lock(tmp_path, timeout=0.3, stale_timeout=60)

    winner = winners[0]
    assert not winner.released
    assert read_lock_state(lock_path(tmp_path)) == winner.state
    winner.release()
    assert list(tmp_path.iterdir()) == []

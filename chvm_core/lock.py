"""Cross-process advisory lock for a chvm home.

The lock is a JSON file ``{"pid": ..., "timestamp": ...}`` created with
``O_CREAT | O_EXCL``. A lock older than ``stale_timeout`` seconds is
considered abandoned and may be reclaimed by the next caller.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

from .errors import LockTimeoutError
from .layout import LOCK_FILE_NAME

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 5.0
DEFAULT_STALE_TIMEOUT = 60.0
_MIN_POLL = 0.1
_MAX_POLL = 1.0


def lock_path(home: Path | str) -> Path:
    return Path(home) / LOCK_FILE_NAME


@dataclass(frozen=True)
class LockState:
    pid: int
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"pid": self.pid, "timestamp": self.timestamp}


def _now_ms() -> int:
    return int(time.time() * 1000)


def read_lock_state(path: Path) -> LockState | None:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return LockState(pid=int(payload["pid"]), timestamp=int(payload["timestamp"]))
    except (OSError, ValueError, KeyError, TypeError):
        return None


def _lock_age(path: Path) -> float | None:
    """Age in seconds, from the recorded timestamp or the file mtime; None if absent."""
    state = read_lock_state(path)
    if state is not None:
        return (_now_ms() - state.timestamp) / 1000.0
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return None


def _identity(path: Path) -> LockState | tuple[int, int] | None:
    """What a lock file holds: its recorded state, else its inode and mtime."""
    state = read_lock_state(path)
    if state is not None:
        return state
    try:
        info = path.stat()
    except FileNotFoundError:
        return None
    return (info.st_ino, info.st_mtime_ns)


def _stale_identity(path: Path, stale_timeout: float) -> LockState | tuple[int, int] | None:
    """Identity of the lock file when it is stale, None when it is live or absent."""
    identity = _identity(path)
    if identity is None:
        return None
    if isinstance(identity, LockState):
        age = (_now_ms() - identity.timestamp) / 1000.0
    else:
        age = time.time() - identity[1] / 1e9
    return identity if age > stale_timeout else None


class LockHandle:
    """Held lock; ``release`` may be called any number of times."""

    def __init__(self, path: Path, state: LockState) -> None:
        self.path = path
        self.state = state
        self._released = False
        self._guard = threading.Lock()
        self._stop = threading.Event()
        self._heartbeat: threading.Thread | None = None

    @property
    def released(self) -> bool:
        return self._released

    def refresh(self) -> bool:
        """Rewrite the timestamp so long operations are not mistaken for stale locks."""
        with self._guard:
            if self._released or read_lock_state(self.path) != self.state:
                return False
            state = LockState(pid=self.state.pid, timestamp=_now_ms())
            temp = self.path.with_name(f"{self.path.name}.{secrets.token_hex(4)}.tmp")
            temp.write_text(json.dumps(state.to_dict()), encoding="utf-8")
            os.replace(temp, self.path)
            self.state = state
            return True

    def start_heartbeat(self, interval: float) -> None:
        if self._heartbeat is not None or interval <= 0:
            return

        def _beat() -> None:
            while not self._stop.wait(interval):
                try:
                    if not self.refresh():
                        return
                except OSError as exc:
                    logger.warning("lock heartbeat failed for %s: %s", self.path, exc)
                    return

        self._heartbeat = threading.Thread(target=_beat, name="chvm-lock-heartbeat", daemon=True)
        self._heartbeat.start()

    def release(self) -> None:
        self._stop.set()
        if self._heartbeat is not None and self._heartbeat is not threading.current_thread():
            self._heartbeat.join()
        with self._guard:
            if self._released:
                return
            self._released = True
            if read_lock_state(self.path) != self.state:
                logger.warning("lock %s no longer owned by pid=%s; leaving it", self.path, self.state.pid)
                return
            self.path.unlink(missing_ok=True)
        logger.debug("lock released %s", self.path)

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def _try_create(path: Path) -> LockState | None:
    state = LockState(pid=os.getpid(), timestamp=_now_ms())
    try:
        fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return None
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        json.dump(state.to_dict(), handle)
        handle.flush()
        os.fsync(handle.fileno())
    return state


def _reclaim_stale(path: Path, seen: LockState | tuple[int, int]) -> bool:
    """Remove the stale lock identified by ``seen``; False if it was already replaced."""
    # rename first so only one contender removes a given stale file
    tombstone = path.with_name(f"{path.name}.stale-{secrets.token_hex(4)}")
    try:
        path.rename(tombstone)
    except FileNotFoundError:
        return False
    if _identity(tombstone) != seen:
        # another contender reclaimed it and took a fresh lock in between
        try:
            os.link(tombstone, path)
        except FileExistsError:
            logger.warning("could not restore lock %s taken over during reclaim", path)
        tombstone.unlink(missing_ok=True)
        return False
    logger.info("reclaimed stale lock %s", path)
    tombstone.unlink(missing_ok=True)
    return True


def acquire_lock(
    home: Path | str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    stale_timeout: float = DEFAULT_STALE_TIMEOUT,
    heartbeat: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> LockHandle:
    """Take the home lock, waiting up to ``timeout`` seconds for a live holder."""
    path = lock_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + max(timeout, 0.0)
    poll = _MIN_POLL
    while True:
        state = _try_create(path)
        if state is not None:
            logger.debug("lock acquired %s pid=%s", path, state.pid)
            handle = LockHandle(path, state)
            if heartbeat:
                handle.start_heartbeat(heartbeat)
            return handle
        seen = _stale_identity(path, stale_timeout)
        if seen is not None and _reclaim_stale(path, seen):
            continue
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            holder = read_lock_state(path)
            owner = f" held by pid {holder.pid}" if holder else ""
            raise LockTimeoutError(f"failed to acquire lock {path}{owner} within {timeout:.1f}s")
        sleep(min(poll, remaining))
        poll = min(poll * 2, _MAX_POLL)


def release_lock(handle: LockHandle | None) -> None:
    if handle is not None:
        handle.release()


def with_lock(
    home: Path | str,
    fn: Callable[[], T],
    *,
    timeout: float = DEFAULT_TIMEOUT,
    stale_timeout: float = DEFAULT_STALE_TIMEOUT,
    heartbeat: float | None = None,
) -> T:
    handle = acquire_lock(home, timeout=timeout, stale_timeout=stale_timeout, heartbeat=heartbeat)
    try:
        return fn()
    finally:
        handle.release()


def is_locked(home: Path | str, *, stale_timeout: float = DEFAULT_STALE_TIMEOUT) -> bool:
    age = _lock_age(lock_path(home))
    return age is not None and age <= stale_timeout

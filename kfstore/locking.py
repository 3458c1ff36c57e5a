"""Advisory marker-file lock for the filesystem backend.

A zero-byte marker file directly under the store root signals that an
operation is in progress. Within one process a `threading.Lock` guards the
marker so threads sharing a `Store` never race on it; across processes the
marker is created with ``O_CREAT | O_EXCL`` so only one holder can own it.

The lock is advisory: an actor that ignores the marker is not stopped. A
marker left behind by a holder that crashed is not removed automatically;
waiting on it ends in `LockTimeout` (or blocks forever when `timeout` is
None). Use `MarkerLock.break_lock` to clear it once the holder is known to
be gone.
"""
from __future__ import annotations
import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import LockTimeout
from .keys import LOCK_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.01


class MarkerLock:
    def __init__(
        self,
        root: Path,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be non-negative or None")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.path = Path(root) / LOCK_FILENAME
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._mutex = threading.Lock()

    def is_locked(self) -> bool:
        """True if this process holds the lock or a marker exists on disk."""
        return self._mutex.locked() or self.path.exists()

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def _create_marker(self, deadline: Optional[float]) -> None:
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                remaining = self._remaining(deadline)
                if remaining is not None and remaining <= 0:
                    raise LockTimeout(f"timed out waiting for lock marker {self.path}")
                time.sleep(self.poll_interval if remaining is None else min(self.poll_interval, remaining))
                continue
            os.close(fd)
            return

    def acquire(self) -> None:
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        if not self._mutex.acquire(timeout=-1 if deadline is None else self.timeout):
            raise LockTimeout(f"timed out waiting for in-process lock on {self.path}")
        try:
            self._create_marker(deadline)
        except BaseException:
            self._mutex.release()
            raise
        logger.debug("Acquired lock marker %s", self.path)

    def release(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("Lock marker %s vanished while held", self.path)
        finally:
            self._mutex.release()
        logger.debug("Released lock marker %s", self.path)

    @contextmanager
    def hold(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def break_lock(self) -> bool:
        """Remove a stale marker. Returns True if one was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.warning("Removed stale lock marker %s", self.path)
        return True

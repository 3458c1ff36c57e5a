import threading
import time

import pytest

from kfstore.errors import LockTimeout
from kfstore.keys import LOCK_FILENAME
from kfstore.locking import MarkerLock


def test_hold_creates_and_removes_marker(tmp_path):
    lock = MarkerLock(tmp_path)
    assert lock.is_locked() is False
    with lock.hold():
        marker = tmp_path / LOCK_FILENAME
        assert marker.exists()
        assert marker.stat().st_size == 0
        assert lock.is_locked() is True
    assert not (tmp_path / LOCK_FILENAME).exists()
    assert lock.is_locked() is False


def test_marker_released_on_error(tmp_path):
    lock = MarkerLock(tmp_path)
    with pytest.raises(RuntimeError):
        with lock.hold():
            raise RuntimeError("boom")
    assert lock.is_locked() is False


def test_foreign_marker_times_out(tmp_path):
    # a marker left by another process (or a crashed holder)
    (tmp_path / LOCK_FILENAME).touch()
    lock = MarkerLock(tmp_path, timeout=0.05, poll_interval=0.01)
    assert lock.is_locked() is True
    start = time.monotonic()
    with pytest.raises(LockTimeout):
        lock.acquire()
    assert time.monotonic() - start >= 0.05
    # the in-process mutex is not left held after a timeout
    assert lock._mutex.locked() is False
    assert (tmp_path / LOCK_FILENAME).exists()


def test_waits_for_marker_to_disappear(tmp_path):
    marker = tmp_path / LOCK_FILENAME
    marker.touch()
    lock = MarkerLock(tmp_path, timeout=5, poll_interval=0.01)
    timer = threading.Timer(0.1, marker.unlink)
    timer.start()
    try:
        with lock.hold():
            assert marker.exists()
    finally:
        timer.join()
    assert not marker.exists()


def test_break_lock(tmp_path):
    lock = MarkerLock(tmp_path, timeout=0)
    assert lock.break_lock() is False
    (tmp_path / LOCK_FILENAME).touch()
    assert lock.break_lock() is True
    with lock.hold():
        pass


def test_threads_are_mutually_exclusive(tmp_path):
    lock = MarkerLock(tmp_path, timeout=10, poll_interval=0.001)
    inside = []
    overlaps = []

    def worker():
        for _ in range(20):
            with lock.hold():
                if inside:
                    overlaps.append(True)
                inside.append(1)
                time.sleep(0.0005)
                inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []
    assert not (tmp_path / LOCK_FILENAME).exists()


def test_invalid_settings(tmp_path):
    with pytest.raises(ValueError):
        MarkerLock(tmp_path, timeout=-1)
    with pytest.raises(ValueError):
        MarkerLock(tmp_path, poll_interval=0)

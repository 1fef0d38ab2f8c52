"""Tests for the failed 2FA attempt tracker"""
import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from lostfound_admin.database import SessionLocal
from lostfound_admin.services.lockout import AttemptLockoutTracker

T0 = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def tracker(db) -> AttemptLockoutTracker:
    return AttemptLockoutTracker(SessionLocal, max_attempts=3, window=timedelta(minutes=10))


def test_first_attempt_creates_record(tracker):
    state = tracker.register_attempt("admin-1", T0)
    assert state.attempt_count == 1
    assert state.locked_until is None
    assert tracker.get_state("admin-1").attempt_count == 1


def test_attempts_accumulate_within_window(tracker):
    for minute in range(3):
        state = tracker.register_attempt("admin-1", T0 + timedelta(minutes=minute))
    assert state.attempt_count == 3


def test_lock_out_sets_window(tracker):
    tracker.register_attempt("admin-1", T0)
    state = tracker.lock_out("admin-1", T0)
    assert state.locked_until == T0 + timedelta(minutes=10)
    assert state.is_locked(T0 + timedelta(minutes=9))
    assert not state.is_locked(T0 + timedelta(minutes=10))
    assert state.retry_after(T0 + timedelta(minutes=9, seconds=30)) == 30


def test_locked_record_is_unchanged(tracker):
    for _ in range(3):
        tracker.register_attempt("admin-1", T0)
    tracker.lock_out("admin-1", T0)

    state = tracker.register_attempt("admin-1", T0 + timedelta(minutes=1))
    assert state.attempt_count == 3
    assert state.is_locked(T0 + timedelta(minutes=1))


def test_gap_longer_than_window_resets(tracker):
    for _ in range(3):
        tracker.register_attempt("admin-1", T0)
    tracker.lock_out("admin-1", T0)

    later = T0 + timedelta(minutes=10, seconds=1)
    state = tracker.register_attempt("admin-1", later)
    assert state.attempt_count == 1
    assert state.locked_until is None
    assert state.window_reset is True


def test_attempt_past_ceiling_is_locked(tracker):
    for _ in range(3):
        tracker.register_attempt("admin-1", T0)

    # No lock_out yet: the third code may still be under check
    state = tracker.register_attempt("admin-1", T0 + timedelta(seconds=5))
    assert state.attempt_count == 3
    assert state.locked_until == T0 + timedelta(minutes=10, seconds=5)
    assert state.is_locked(T0 + timedelta(seconds=5))


def test_attempt_exactly_one_window_later_resets(tracker):
    for _ in range(3):
        tracker.register_attempt("admin-1", T0)
    tracker.lock_out("admin-1", T0)

    at_expiry = T0 + timedelta(minutes=10)
    state = tracker.register_attempt("admin-1", at_expiry)
    assert state.attempt_count == 1
    assert state.locked_until is None
    assert state.window_reset is True


def test_reset_attempts(tracker):
    tracker.register_attempt("admin-1", T0)
    tracker.register_attempt("admin-1", T0)
    tracker.reset_attempts("admin-1", T0)

    state = tracker.get_state("admin-1")
    assert state.attempt_count == 0
    assert state.locked_until is None


def test_admins_are_tracked_separately(tracker):
    tracker.register_attempt("admin-1", T0)
    tracker.register_attempt("admin-1", T0)
    assert tracker.register_attempt("admin-2", T0).attempt_count == 1


def test_concurrent_attempts_never_exceed_ceiling(tracker):
    results = []
    results_lock = threading.Lock()

    def attempt():
        state = tracker.register_attempt("admin-1", T0)
        with results_lock:
            results.append(state)

    threads = [threading.Thread(target=attempt) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    unlocked = sorted(state.attempt_count for state in results if not state.is_locked(T0))
    assert unlocked == [1, 2, 3]
    assert len(results) == 10
    assert all(state.attempt_count == 3 for state in results if state.is_locked(T0))


def test_storage_failure_degrades_to_unlocked():
    class BrokenSession:
        def query(self, *args):
            raise OperationalError("SELECT", {}, Exception("database unavailable"))

        def rollback(self):
            pass

        def close(self):
            pass

    tracker = AttemptLockoutTracker(BrokenSession)
    state = tracker.register_attempt("admin-1", T0)
    assert state.attempt_count == 0
    assert not state.is_locked(T0)
    assert tracker.get_state("admin-1").locked_until is None

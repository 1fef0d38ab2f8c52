"""Failed second-factor attempt tracking with a time-boxed lockout"""
import math
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lostfound_admin.models.twofa_attempt import TwoFAAttempt
from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.logger import logger


class AttemptState(NamedTuple):
    attempt_count: int
    locked_until: Optional[datetime]
    window_reset: bool = False

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def retry_after(self, now: datetime) -> int:
        """Whole seconds until the lock expires (at least 1 while locked)"""
        if not self.is_locked(now):
            return 0
        return max(1, math.ceil((self.locked_until - now).total_seconds()))


_UNLOCKED = AttemptState(0, None)


class AttemptLockoutTracker:
    """Per-admin counter of login-time 2FA attempts.

    ``register_attempt`` is the only read-check-increment and runs under a
    per-admin lock plus a row lock, so concurrent attempts for one admin are
    serialized and each observes a distinct count.

    Storage failures are logged and reported as an unlocked, empty state.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_attempts: int = 3,
        window: timedelta = timedelta(minutes=10),
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.window = window
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, admin_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(admin_id)
            if lock is None:
                lock = self._locks[admin_id] = threading.Lock()
            return lock

    @staticmethod
    def _load(db: Session, admin_id: str) -> Optional[TwoFAAttempt]:
        return (
            db.query(TwoFAAttempt)
            .filter(TwoFAAttempt.admin_id == admin_id)
            .with_for_update()
            .first()
        )

    def register_attempt(self, admin_id: str, now: Optional[datetime] = None) -> AttemptState:
        """Count one attempt and return the resulting state.

        - no record yet: created with a count of 1
        - ``window`` or more since the last attempt: count back to 1, lock cleared
        - currently locked: returned unchanged
        - ceiling already reached: locked for one window, count unchanged
        - otherwise: count incremented
        """
        now = now or utcnow()

        with self._lock_for(admin_id):
            db = self.session_factory()
            try:
                record = self._load(db, admin_id)
                window_reset = False

                if record is None:
                    record = TwoFAAttempt(admin_id=admin_id, attempt_count=1, last_attempt_at=now)
                    db.add(record)
                elif record.last_attempt_at is None or now - record.last_attempt_at >= self.window:
                    record.attempt_count = 1
                    record.last_attempt_at = now
                    record.locked_until = None
                    window_reset = True
                elif record.locked_until is not None and record.locked_until > now:
                    state = AttemptState(record.attempt_count, record.locked_until)
                    db.rollback()
                    return state
                elif record.attempt_count >= self.max_attempts:
                    # Every allowed code in this window is spent or still being checked
                    record.locked_until = now + self.window
                    record.last_attempt_at = now
                else:
                    record.attempt_count += 1
                    record.last_attempt_at = now

                db.commit()
                return AttemptState(record.attempt_count, record.locked_until, window_reset)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(
                    f"Failed to record 2FA attempt: {exc}",
                    extra={"admin_id": admin_id, "action": "register_attempt"},
                )
                return _UNLOCKED
            finally:
                db.close()

    def lock_out(self, admin_id: str, now: Optional[datetime] = None) -> AttemptState:
        """Lock the admin out for one window starting at ``now``"""
        now = now or utcnow()

        with self._lock_for(admin_id):
            db = self.session_factory()
            try:
                record = self._load(db, admin_id)
                if record is None:
                    record = TwoFAAttempt(admin_id=admin_id, attempt_count=self.max_attempts)
                    db.add(record)
                record.last_attempt_at = now
                record.locked_until = now + self.window
                db.commit()
                return AttemptState(record.attempt_count, record.locked_until)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(
                    f"Failed to lock out admin: {exc}",
                    extra={"admin_id": admin_id, "action": "lock_out"},
                )
                return _UNLOCKED
            finally:
                db.close()

    def reset_attempts(self, admin_id: str, now: Optional[datetime] = None) -> None:
        now = now or utcnow()

        with self._lock_for(admin_id):
            db = self.session_factory()
            try:
                record = self._load(db, admin_id)
                if record is not None:
                    record.attempt_count = 0
                    record.last_attempt_at = now
                    record.locked_until = None
                    db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(
                    f"Failed to reset 2FA attempts: {exc}",
                    extra={"admin_id": admin_id, "action": "reset_attempts"},
                )
            finally:
                db.close()

    def get_state(self, admin_id: str) -> AttemptState:
        db = self.session_factory()
        try:
            record = db.query(TwoFAAttempt).filter(TwoFAAttempt.admin_id == admin_id).first()
            if record is None:
                return _UNLOCKED
            return AttemptState(record.attempt_count, record.locked_until)
        except SQLAlchemyError as exc:
            logger.error(f"Failed to read 2FA attempts: {exc}", extra={"admin_id": admin_id})
            return _UNLOCKED
        finally:
            db.close()

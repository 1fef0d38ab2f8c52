"""Per-session second-factor verification state"""
import enum
import hashlib
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.roles import SUPER_ADMIN


def session_key(token: str) -> str:
    """Stable key for a bearer credential; the raw token is never stored"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionVerificationStore:
    """Remembers which sessions passed login-time 2FA, and when.

    Entries expire ``ttl`` seconds after they are set, matching the lifetime
    of the identity-service session they belong to.
    """

    def __init__(self, ttl: float = 28800, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[datetime, float]] = {}
        self._lock = threading.Lock()

    def mark_verified(self, key: str, at: Optional[datetime] = None) -> datetime:
        verified_at = at or utcnow()
        with self._lock:
            self._entries[key] = (verified_at, self.clock() + self.ttl)
            self._purge()
        return verified_at

    def verified_at(self, key: str) -> Optional[datetime]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            verified_at, expires = entry
            if self.clock() >= expires:
                del self._entries[key]
                return None
            return verified_at

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _purge(self) -> None:
        now = self.clock()
        expired = [key for key, (_, expires) in self._entries.items() if now >= expires]
        for key in expired:
            del self._entries[key]


class SecondFactorState(str, enum.Enum):
    NO_2FA = "no_2fa"
    REQUIRED = "required"
    SATISFIED = "satisfied"


def requires_second_factor(profile) -> bool:
    """Only super_admins with enabled and confirmed 2FA are ever challenged"""
    return profile.role == SUPER_ADMIN and profile.twofa_confirmed


def second_factor_state(profile, verified_2fa_at: Optional[datetime]) -> SecondFactorState:
    if not requires_second_factor(profile):
        return SecondFactorState.NO_2FA
    if verified_2fa_at is None:
        return SecondFactorState.REQUIRED
    return SecondFactorState.SATISFIED

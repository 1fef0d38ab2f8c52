"""Time-bounded in-process cache of the ``system_settings`` table"""
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from lostfound_admin.middleware.monitoring import record_settings_reload
from lostfound_admin.models.system_setting import SystemSetting
from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.logger import logger


class SettingEntry(NamedTuple):
    key: str
    value: Any
    type: str
    cached_at: datetime


SettingsLoader = Callable[[], Iterable[Tuple[str, Any, str]]]


def database_loader(session_factory: Callable[[], Session]) -> SettingsLoader:
    """Loader that reads every ``(key, value, type)`` row from the store"""

    def _load() -> Iterable[Tuple[str, Any, str]]:
        db = session_factory()
        try:
            rows = db.query(
                SystemSetting.setting_key,
                SystemSetting.setting_value,
                SystemSetting.setting_type,
            ).all()
            return [(key, value, setting_type) for key, value, setting_type in rows]
        finally:
            db.close()

    return _load


class SettingsCache:
    """Key/value settings refreshed in full at most once per ``ttl`` seconds.

    The cached state is a single ``(entries, refreshed_at)`` tuple that is
    replaced wholesale, so readers never see a partially built map and never
    take the lock. Refreshes are single-flight: a reader that finds another
    refresh in progress serves the current snapshot. If the loader fails the
    previous snapshot is kept and the next read retries.
    """

    def __init__(
        self,
        loader: SettingsLoader,
        ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl = ttl
        self.clock = clock
        self._snapshot: Tuple[Dict[str, SettingEntry], Optional[float]] = ({}, None)
        self._refresh_lock = threading.Lock()

    def _is_stale(self, refreshed_at: Optional[float]) -> bool:
        return refreshed_at is None or self.clock() - refreshed_at > self.ttl

    def _refresh(self) -> None:
        if not self._refresh_lock.acquire(blocking=False):
            return
        try:
            # Another thread may have refreshed while we were deciding to
            if not self._is_stale(self._snapshot[1]):
                return

            cached_at = utcnow()
            try:
                rows = list(self.loader())
            except Exception as exc:
                logger.error(f"Failed to load system settings: {exc}", extra={"action": "settings_reload"})
                record_settings_reload("failure")
                return

            entries = {
                key: SettingEntry(key=key, value=value, type=setting_type, cached_at=cached_at)
                for key, value, setting_type in rows
            }
            self._snapshot = (entries, self.clock())
            record_settings_reload("success")
        finally:
            self._refresh_lock.release()

    def snapshot(self) -> Dict[str, SettingEntry]:
        """Current entries, refreshed first when the TTL has elapsed"""
        entries, refreshed_at = self._snapshot
        if self._is_stale(refreshed_at):
            self._refresh()
            entries, _ = self._snapshot
        return entries

    def get_entry(self, key: str) -> Optional[SettingEntry]:
        return self.snapshot().get(key)

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.get_entry(key)
        return default if entry is None else entry.value

    def invalidate(self) -> None:
        """Force the next read to reload (called after settings are updated)"""
        entries, _ = self._snapshot
        self._snapshot = (entries, None)

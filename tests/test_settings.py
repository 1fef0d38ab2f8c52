"""Tests for system settings, the settings cache and maintenance mode"""
import threading

import pytest
from fastapi.testclient import TestClient

from conftest import headers_for
from lostfound_admin.models.audit_log import AuditLog
from lostfound_admin.models.system_setting import SystemSetting
from lostfound_admin.services.settings_cache import SettingsCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingLoader:
    def __init__(self, rows):
        self.rows = rows
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return list(self.rows)


@pytest.fixture
def seed_settings(db):
    def _seed(**values):
        types = {bool: "boolean", int: "number", float: "number", str: "string"}
        for key, value in values.items():
            db.add(SystemSetting(
                setting_key=key,
                setting_value=value,
                setting_type=types.get(type(value), "json"),
            ))
        db.commit()
    return _seed


# ===== SettingsCache =====

def test_reads_within_ttl_hit_store_once():
    loader = CountingLoader([("maintenance_mode", False, "boolean")])
    clock = FakeClock()
    cache = SettingsCache(loader, ttl=30, clock=clock)

    for _ in range(5):
        assert cache.get("maintenance_mode") is False
        clock.now += 5

    assert loader.calls == 1


def test_read_after_ttl_sees_changes():
    loader = CountingLoader([("maintenance_mode", False, "boolean")])
    clock = FakeClock()
    cache = SettingsCache(loader, ttl=30, clock=clock)
    assert cache.get("maintenance_mode") is False

    loader.rows = [("maintenance_mode", True, "boolean")]
    clock.now += 29
    assert cache.get("maintenance_mode") is False

    clock.now += 2
    assert cache.get("maintenance_mode") is True
    assert loader.calls == 2


def test_loader_failure_keeps_stale_snapshot():
    loader = CountingLoader([("maintenance_message", "back soon", "string")])
    clock = FakeClock()
    cache = SettingsCache(loader, ttl=30, clock=clock)
    assert cache.get("maintenance_message") == "back soon"

    def broken():
        raise RuntimeError("database unavailable")

    cache.loader = broken
    clock.now += 31
    assert cache.get("maintenance_message") == "back soon"

    # The next read retries
    cache.loader = loader
    assert cache.get("maintenance_message") == "back soon"
    assert loader.calls == 2


def test_invalidate_forces_reload():
    loader = CountingLoader([("site_name", "Trust", "string")])
    cache = SettingsCache(loader, ttl=30, clock=FakeClock())
    cache.get("site_name")
    cache.invalidate()
    cache.get("site_name")
    assert loader.calls == 2


def test_entries_carry_type():
    cache = SettingsCache(CountingLoader([("max_items", 25, "number")]), ttl=30, clock=FakeClock())
    entry = cache.get_entry("max_items")
    assert entry.value == 25
    assert entry.type == "number"
    assert cache.get("missing", default="fallback") == "fallback"


def test_concurrent_readers_share_one_reload():
    release = threading.Event()
    calls = []

    def slow_loader():
        calls.append(1)
        release.wait(timeout=5)
        return [("maintenance_mode", False, "boolean")]

    cache = SettingsCache(slow_loader, ttl=30, clock=FakeClock())
    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.snapshot())) for _ in range(8)]
    for thread in threads:
        thread.start()
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(calls) == 1
    assert len(results) == 8
    # Every reader saw either the empty initial map or the complete new one
    assert all(snapshot in ({}, cache.snapshot()) for snapshot in results)


# ===== Endpoints =====

def test_settings_are_typed(client: TestClient, create_admin, seed_settings):
    seed_settings(site_name="Trust", maintenance_mode=False, max_items=25, features={"chat": True})
    admin = create_admin(role="analyst")

    response = client.get("/admin/settings", headers=headers_for(admin))
    assert response.status_code == 200

    by_key = {item["setting_key"]: item for item in response.json()}
    assert by_key["site_name"]["value_string"] == "Trust"
    assert by_key["maintenance_mode"]["value_boolean"] is False
    assert by_key["max_items"]["value_number"] == 25
    assert by_key["features"]["value_json"] == {"chat": True}
    assert by_key["site_name"]["value_number"] is None


def test_update_settings(client: TestClient, db, create_admin, seed_settings):
    seed_settings(site_name="Trust", max_items=25)
    admin = create_admin(role="super_admin")

    response = client.put(
        "/admin/settings",
        json=[{"key": "site_name", "value": "Trust Lost & Found"}, {"key": "nope", "value": 1}],
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "updated": 1, "unknownKeys": ["nope"]}

    row = db.query(SystemSetting).filter(SystemSetting.setting_key == "site_name").one()
    db.refresh(row)
    assert row.setting_value == "Trust Lost & Found"
    assert row.updated_by == admin.id

    entry = db.query(AuditLog).filter(AuditLog.action == "UPDATE_SETTINGS").one()
    assert entry.log_metadata["updatedKeys"] == ["site_name", "nope"]


def test_update_settings_requires_list(client: TestClient, create_admin):
    admin = create_admin(role="super_admin")
    response = client.put("/admin/settings", json={"key": "site_name"}, headers=headers_for(admin))
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


# ===== Maintenance mode =====

def test_maintenance_blocks_public_routes(client: TestClient, seed_settings):
    seed_settings(maintenance_mode=True, maintenance_message="Back at noon")

    response = client.get("/api/health")
    assert response.status_code == 503
    assert response.json() == {
        "error": "Service temporarily unavailable",
        "message": "Back at noon",
        "maintenance": True,
        "code": "MAINTENANCE_MODE",
    }


def test_maintenance_default_message(client: TestClient, seed_settings):
    seed_settings(maintenance_mode=True)
    response = client.get("/api/health")
    assert response.status_code == 503
    assert response.json()["message"] == "We are currently performing maintenance. Please check back soon."


def test_maintenance_exempts_admin_and_health(client: TestClient, seed_settings):
    seed_settings(maintenance_mode=True)
    assert client.get("/health").status_code == 200
    assert client.get("/admin/auth/health").status_code == 200


def test_maintenance_runs_before_auth(client: TestClient, seed_settings):
    seed_settings(maintenance_mode=True)
    response = client.get("/api/unknown", headers={"Authorization": "Bearer whatever"})
    assert response.status_code == 503


def test_maintenance_requires_exact_true(client: TestClient, seed_settings):
    seed_settings(maintenance_mode="true")
    assert client.get("/api/health").status_code == 200


def test_maintenance_toggle_applies_immediately(client: TestClient, create_admin, seed_settings):
    seed_settings(maintenance_mode=False)
    admin = create_admin(role="super_admin")
    assert client.get("/api/health").status_code == 200

    response = client.put(
        "/admin/settings",
        json=[{"key": "maintenance_mode", "value": True}],
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    assert client.get("/api/health").status_code == 503

"""Tests for rate limiting and request metadata helpers"""
import time

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from conftest import bearer, headers_for
from lostfound_admin.middleware.rate_limit import LoginThrottle
from lostfound_admin.services.sessions import SessionVerificationStore
from lostfound_admin.utils.client import get_client_ip, sanitize_metadata


def _request(headers: dict, client=("10.1.1.1", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_forwarded_for():
    request = _request({"X-Forwarded-For": "203.0.113.9, 10.0.0.2", "X-Real-IP": "198.51.100.1"})
    assert get_client_ip(request, trust_proxy_headers=True) == "203.0.113.9"


def test_client_ip_falls_back_to_real_ip_then_socket():
    assert get_client_ip(_request({"X-Real-IP": "198.51.100.1"}), trust_proxy_headers=True) == "198.51.100.1"
    assert get_client_ip(_request({}), trust_proxy_headers=True) == "10.1.1.1"


def test_client_ip_ignores_headers_when_untrusted():
    request = _request({"X-Forwarded-For": "203.0.113.9"})
    assert get_client_ip(request, trust_proxy_headers=False) == "10.1.1.1"


def test_sanitize_metadata():
    assert sanitize_metadata({"refresh_token": "r", "Password": "p", "count": 2}) == {
        "refresh_token": "[REDACTED]",
        "Password": "[REDACTED]",
        "count": 2,
    }
    assert sanitize_metadata(None) == {}


def test_login_throttle_counts_failures_only():
    throttle = LoginThrottle("2 per 15 minutes")
    assert not throttle.is_blocked("1.2.3.4")

    throttle.register_failure("1.2.3.4")
    assert not throttle.is_blocked("1.2.3.4")
    throttle.register_failure("1.2.3.4")
    assert throttle.is_blocked("1.2.3.4")
    assert 0 < throttle.retry_after("1.2.3.4") <= 15 * 60

    assert not throttle.is_blocked("5.6.7.8")


def test_failed_logins_block_address(client: TestClient, create_admin):
    admin = create_admin(role="analyst")
    headers = {"X-Forwarded-For": "203.0.113.50"}

    for _ in range(5):
        response = client.get("/admin/auth/profile", headers={**headers, **bearer("forged")})
        assert response.status_code == 401

    # Even a valid credential is refused from this address now
    blocked = client.get("/admin/auth/profile", headers={**headers, **headers_for(admin)})
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "RATE_LIMITED"
    assert blocked.json()["retryAfter"] > 0

    # Other addresses are unaffected
    other = client.get("/admin/auth/profile", headers={"X-Forwarded-For": "203.0.113.51", **headers_for(admin)})
    assert other.status_code == 200


def test_two_fa_tier(client: TestClient, create_admin):
    admin = create_admin(role="analyst")
    headers = headers_for(admin)

    for _ in range(10):
        assert client.post("/admin/2fa/check", headers=headers).status_code == 200

    response = client.post("/admin/2fa/check", headers=headers)
    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "RATE_LIMITED"
    # Seconds left in the current window, not the window length
    assert 0 < body["retryAfter"] <= 300
    assert response.headers["Retry-After"] == str(body["retryAfter"])


def test_two_fa_tier_retry_after_counts_down(client: TestClient, create_admin, monkeypatch):
    admin = create_admin(role="analyst")
    headers = headers_for(admin)

    for _ in range(10):
        client.post("/admin/2fa/check", headers=headers)

    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 120)

    response = client.post("/admin/2fa/check", headers=headers)
    assert response.status_code == 429
    assert response.json()["retryAfter"] <= 180


def test_health_is_not_rate_limited(client: TestClient):
    for _ in range(3):
        assert client.get("/health").status_code == 200


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_session_verification_expires():
    clock = FakeClock()
    store = SessionVerificationStore(ttl=60, clock=clock)
    verified_at = store.mark_verified("session-a")

    assert store.verified_at("session-a") == verified_at
    assert store.verified_at("session-b") is None

    clock.now = 61
    assert store.verified_at("session-a") is None


def test_session_verification_clear():
    store = SessionVerificationStore(ttl=60)
    store.mark_verified("session-a")
    store.clear("session-a")
    assert store.verified_at("session-a") is None


@pytest.mark.parametrize("path", ["/admin/settings", "/admin/audit-logs", "/admin/login-history"])
def test_admin_routes_require_token(client: TestClient, path):
    response = client.get(path)
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"

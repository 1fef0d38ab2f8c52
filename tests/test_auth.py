"""Tests for admin sign-in endpoints and the authentication chain"""
from datetime import timedelta

import pyotp
from fastapi.testclient import TestClient

from conftest import bearer, headers_for, make_token
from lostfound_admin.models.audit_log import AuditLog
from lostfound_admin.models.login_history import AdminLoginHistory
from lostfound_admin.utils.clock import utcnow


def test_auth_health_needs_no_token(client: TestClient):
    response = client.get("/admin/auth/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_token(client: TestClient):
    response = client.post("/admin/auth/verify")
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_non_bearer_scheme_is_missing_token(client: TestClient):
    response = client.get("/admin/auth/profile", headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_invalid_token(client: TestClient):
    response = client.post("/admin/auth/verify", headers=bearer("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token(client: TestClient, create_admin):
    admin = create_admin(role="analyst")
    token = make_token(admin.user_id, admin.email, expires_in=-60)
    response = client.post("/admin/auth/verify", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_token_signed_with_other_secret(client: TestClient, create_admin):
    admin = create_admin(role="analyst")
    token = make_token(admin.user_id, admin.email, secret="some-other-secret")
    response = client.post("/admin/auth/verify", headers=bearer(token))
    assert response.status_code == 401


def test_principal_without_admin_profile_is_forbidden(client: TestClient):
    response = client.post("/admin/auth/verify", headers=bearer(make_token("not-an-admin", "user@example.com")))
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "FORBIDDEN"
    assert body["error"] == "Access denied - admin role required"


def test_verify_records_login(client: TestClient, db, create_admin):
    admin = create_admin(role="moderator")
    response = client.post(
        "/admin/auth/verify",
        headers={**headers_for(admin), "User-Agent": "pytest-browser", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["success"] is True
    assert data["admin"] == {"id": admin.id, "email": admin.email, "role": "moderator", "is_active": True}
    assert data["requiresTwoFA"] is False

    login = db.query(AdminLoginHistory).filter(AdminLoginHistory.admin_id == admin.id).one()
    assert login.ip_address == "203.0.113.7"
    assert login.user_agent == "pytest-browser"

    entry = db.query(AuditLog).filter(AuditLog.action == "LOGIN").one()
    assert entry.outcome == "success"
    assert entry.admin_id == admin.id
    assert entry.admin_email == admin.email
    assert entry.ip_address == "203.0.113.7"


def test_verify_reports_pending_second_factor(client: TestClient, create_admin):
    admin = create_admin(role="super_admin", twofa_secret="JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP")
    response = client.post("/admin/auth/verify", headers=headers_for(admin))
    assert response.status_code == 200
    assert response.json()["requiresTwoFA"] is True


def test_profile_is_sanitized(client: TestClient, create_admin):
    admin = create_admin(role="super_admin", twofa_secret="JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP")
    response = client.get("/admin/auth/profile", headers=headers_for(admin))
    assert response.status_code == 200

    data = response.json()
    assert data["id"] == admin.id
    assert data["role"] == "super_admin"
    assert data["isActive"] is True
    assert data["twoFAEnabled"] is True
    assert "twofa_secret" not in data
    assert "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP" not in response.text


def test_inactive_admin_is_denied_for_every_role(client: TestClient, create_admin):
    for role in ("analyst", "moderator", "super_admin"):
        admin = create_admin(role=role, is_active=False)
        response = client.get("/admin/auth/profile", headers=headers_for(admin))
        assert response.status_code == 403, role
        assert response.json()["code"] == "FORBIDDEN"

    admin = create_admin(role="super_admin", is_active=False, twofa_secret=pyotp.random_base32())
    response = client.get("/admin/auth/profile", headers=headers_for(admin))
    assert response.status_code == 403


def test_force_logout_denies_exactly_once(client: TestClient, db, create_admin):
    admin = create_admin(role="super_admin", force_logout_at=utcnow() - timedelta(minutes=1))
    headers = headers_for(admin)

    first = client.get("/admin/auth/profile", headers=headers)
    assert first.status_code == 403

    db.refresh(admin)
    assert admin.force_logout_at is None

    second = client.get("/admin/auth/profile", headers=headers)
    assert second.status_code == 200


def test_future_force_logout_does_not_deny(client: TestClient, create_admin):
    admin = create_admin(role="analyst", force_logout_at=utcnow() + timedelta(hours=1))
    response = client.get("/admin/auth/profile", headers=headers_for(admin))
    assert response.status_code == 200


def test_logout_is_audited(client: TestClient, db, create_admin):
    admin = create_admin(role="analyst")
    response = client.post("/admin/auth/logout", headers=headers_for(admin))
    assert response.status_code == 200
    assert response.json()["success"] is True

    entry = db.query(AuditLog).filter(AuditLog.action == "LOGOUT").one()
    assert entry.outcome == "success"
"""Pytest configuration and fixtures"""
import os

# Settings are read at import time, so configure the test environment first
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["IDENTITY_PROVIDER"] = "jwt"
os.environ["IDENTITY_JWT_SECRET"] = "test-identity-signing-secret-0123456789"
os.environ["IDENTITY_JWT_AUDIENCE"] = "authenticated"
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

import time
import uuid
from datetime import timedelta
from typing import Callable, Generator, Optional

import pyotp
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

from lostfound_admin.database import Base, SessionLocal, engine
from lostfound_admin.main import app
from lostfound_admin.middleware.rate_limit import limiter
from lostfound_admin.models.admin_user import AdminUser
from lostfound_admin.utils.clock import utcnow

JWT_SECRET = os.environ["IDENTITY_JWT_SECRET"]


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Test client with freshly built services and empty rate-limit counters"""
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def lenient_client(db: Session) -> Generator[TestClient, None, None]:
    """Test client that returns 500 responses instead of re-raising server errors"""
    limiter.reset()
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(sub: str, email: Optional[str] = None, expires_in: int = 3600, secret: str = JWT_SECRET) -> str:
    """Mint an identity-service access token"""
    now = int(time.time())
    claims = {
        "sub": sub,
        "email": email,
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def create_admin(db: Session) -> Callable[..., AdminUser]:
    """Factory for admin profiles linked to a fresh principal"""

    def _create(
        role: str = "super_admin",
        is_active: bool = True,
        twofa_secret: Optional[str] = None,
        force_logout_at=None,
        email: Optional[str] = None,
    ) -> AdminUser:
        principal_id = str(uuid.uuid4())
        admin = AdminUser(
            user_id=principal_id,
            email=email or f"{role}-{principal_id[:8]}@lostfound.test",
            role=role,
            is_active=is_active,
            twofa_enabled=twofa_secret is not None,
            twofa_secret=twofa_secret,
            twofa_verified_at=utcnow() - timedelta(days=1) if twofa_secret else None,
            force_logout_at=force_logout_at,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _create


def headers_for(admin: AdminUser) -> dict:
    """Bearer headers for the principal behind ``admin``"""
    return bearer(make_token(admin.user_id, admin.email))


def wrong_code(secret: str, window: int = 2) -> str:
    """A 6-digit code that is not valid for ``secret`` anywhere near now"""
    totp = pyotp.TOTP(secret)
    now = time.time()
    valid = {totp.at(now + step * 30) for step in range(-window - 1, window + 2)}
    for candidate in range(1000000):
        code = f"{(candidate * 7919) % 1000000:06d}"
        if code not in valid:
            return code
    raise AssertionError("unreachable")

"""API dependencies for authentication and authorization.

Every privileged request passes through the same chain, each stage
extending an immutable :class:`AdminContext`:

    get_request_context  request id, client address, user agent
    require_principal    bearer credential checked by the identity service
    require_admin        active admin profile, forced logout applied
    require_role         role hierarchy (and optionally the second factor)

RBAC
----
Use :func:`require_role` for role-gated endpoints and :func:`require_exact_role`
for endpoints reserved to a single role. Pass ``second_factor=True`` on data
routes so super_admins with 2FA enabled must have passed ``verify-login`` in
the current session.

Role hierarchy (higher level → more permissions):
    super_admin (3) > moderator (2) > analyst (1)
"""
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lostfound_admin.database import get_db
from lostfound_admin.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    DependencyFailure,
    RateLimited,
)
from lostfound_admin.middleware.monitoring import record_auth_failure
from lostfound_admin.middleware.rate_limit import LoginThrottle
from lostfound_admin.models.admin_user import AdminUser
from lostfound_admin.services.audit import FAILURE, AuditLogger, AuditMarker
from lostfound_admin.services.identity import IdentityVerifier, Principal
from lostfound_admin.services.lockout import AttemptLockoutTracker
from lostfound_admin.services.profiles import AdminProfileResolver
from lostfound_admin.services.sessions import (
    SecondFactorState,
    SessionVerificationStore,
    second_factor_state,
    session_key,
)
from lostfound_admin.services.settings_cache import SettingsCache
from lostfound_admin.services.totp import TotpEngine
from lostfound_admin.utils.client import get_client_ip, get_user_agent
from lostfound_admin.utils.logger import logger
from lostfound_admin.utils.roles import has_role, is_role

_bearer_scheme = HTTPBearer(auto_error=False)


class AdminContext(NamedTuple):
    """Per-request security context, extended stage by stage with ``_replace``."""
    request_id: Optional[str]
    client_ip: str
    user_agent: str
    endpoint: str                     # "METHOD /path", used in audit metadata
    audit: AuditMarker                # shared by every stage of one request
    principal: Optional[Principal] = None
    session_key: Optional[str] = None
    profile: Optional[AdminUser] = None
    verified_2fa_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Shared services (built once in the application lifespan)
# ---------------------------------------------------------------------------

def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_totp_engine(request: Request) -> TotpEngine:
    return request.app.state.totp


def get_lockout_tracker(request: Request) -> AttemptLockoutTracker:
    return request.app.state.lockout


def get_session_store(request: Request) -> SessionVerificationStore:
    return request.app.state.sessions


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit


def get_profile_resolver(request: Request) -> AdminProfileResolver:
    return request.app.state.profiles


def get_settings_cache(request: Request) -> SettingsCache:
    return request.app.state.settings_cache


def get_login_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle


# ---------------------------------------------------------------------------
# Authentication chain
# ---------------------------------------------------------------------------

def get_request_context(request: Request) -> AdminContext:
    return AdminContext(
        request_id=getattr(request.state, "request_id", None),
        client_ip=get_client_ip(request),
        user_agent=get_user_agent(request),
        endpoint=f"{request.method} {request.url.path}",
        audit=AuditMarker(),
    )


def require_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    ctx: AdminContext = Depends(get_request_context),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    throttle: LoginThrottle = Depends(get_login_throttle),
) -> AdminContext:
    """Require a bearer credential the identity service accepts.

    Addresses that have used up their failed-verification budget are refused
    before the identity service is called.
    """
    if credentials is None or not credentials.credentials:
        record_auth_failure("MISSING_TOKEN")
        raise AuthenticationFailure("No authorization token provided", code="MISSING_TOKEN")

    if throttle.is_blocked(ctx.client_ip):
        record_auth_failure("RATE_LIMITED")
        raise RateLimited(
            "Too many login attempts. Please try again later.",
            retry_after=throttle.retry_after(ctx.client_ip),
        )

    token = credentials.credentials
    try:
        principal = verifier.verify(token)
    except Exception as exc:
        logger.error(f"Credential verification failed: {exc}", extra={"request_id": ctx.request_id})
        raise DependencyFailure("Authentication error")

    if principal is None:
        throttle.register_failure(ctx.client_ip)
        record_auth_failure("INVALID_TOKEN")
        raise AuthenticationFailure("Invalid or expired token", code="INVALID_TOKEN")

    return ctx._replace(principal=principal, session_key=session_key(token))


def require_admin(
    request: Request,
    ctx: AdminContext = Depends(require_principal),
    db: Session = Depends(get_db),
    resolver: AdminProfileResolver = Depends(get_profile_resolver),
    sessions: SessionVerificationStore = Depends(get_session_store),
) -> AdminContext:
    """Require an active admin profile for the authenticated principal.

    Returns the context with ``profile`` and the session's ``verified_2fa_at``
    filled in. The context is also published on ``request.state`` so the
    error handlers can audit failures of admin requests.
    """
    profile = resolver.resolve(db, ctx.principal.id)
    if profile is None:
        record_auth_failure("FORBIDDEN")
        raise AuthorizationFailure("Access denied - admin role required", code="FORBIDDEN")

    ctx = ctx._replace(profile=profile, verified_2fa_at=sessions.verified_at(ctx.session_key))
    request.state.admin_context = ctx
    return ctx


# ---------------------------------------------------------------------------
# Role and second-factor gates
# ---------------------------------------------------------------------------

def enforce_role(ctx: AdminContext, allowed: bool, required_role: str, audit: AuditLogger) -> None:
    """Raise (and audit) unless ``allowed``; ``ctx`` must carry a profile"""
    if ctx.profile is None:
        raise AuthenticationFailure("Not authenticated", code="NOT_AUTHENTICATED")

    if not allowed:
        audit.record_for(
            ctx,
            action="ACCESS_DENIED",
            resource_type="authorization",
            outcome=FAILURE,
            metadata={
                "required_role": required_role,
                "actual_role": ctx.profile.role,
                "endpoint": ctx.endpoint,
            },
        )
        record_auth_failure("FORBIDDEN")
        raise AuthorizationFailure("Insufficient permissions", code="FORBIDDEN", requiredRole=required_role)


def enforce_second_factor(ctx: AdminContext, audit: AuditLogger) -> None:
    """Raise (and audit) when the session still owes a second factor"""
    state = second_factor_state(ctx.profile, ctx.verified_2fa_at)
    if state is SecondFactorState.REQUIRED:
        audit.record_for(
            ctx,
            action="2FA_REQUIRED",
            resource_type="authentication",
            outcome=FAILURE,
            metadata={"endpoint": ctx.endpoint, "reason": "2FA verification required"},
        )
        record_auth_failure("2FA_REQUIRED")
        raise AuthenticationFailure("Two-factor authentication required", code="2FA_REQUIRED")


def require_role(min_role: str, second_factor: bool = False) -> Callable:
    """Return a FastAPI dependency that enforces a minimum admin role.

    Usage::

        @router.get("/sensitive")
        def endpoint(ctx: AdminContext = Depends(require_role("super_admin", second_factor=True))):
            ...

    Args:
        min_role: Minimum required role (``super_admin`` | ``moderator`` | ``analyst``).
        second_factor: Also require a verified second factor when the admin has one.

    Returns:
        A FastAPI-injectable callable that resolves to :class:`AdminContext`
        or raises 403 ``FORBIDDEN`` / 401 ``2FA_REQUIRED``.
    """

    def _role_dep(
        ctx: AdminContext = Depends(require_admin),
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> AdminContext:
        enforce_role(ctx, has_role(ctx.profile.role, min_role) if ctx.profile else False, min_role, audit)
        if second_factor:
            enforce_second_factor(ctx, audit)
        return ctx

    # Give FastAPI a unique name so it doesn't collapse distinct dependencies
    _role_dep.__name__ = f"require_role_{min_role}{'_2fa' if second_factor else ''}"
    return _role_dep


def require_exact_role(role: str, second_factor: bool = False) -> Callable:
    """Like :func:`require_role`, but only ``role`` itself is accepted"""

    def _exact_role_dep(
        ctx: AdminContext = Depends(require_admin),
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> AdminContext:
        enforce_role(ctx, is_role(ctx.profile.role, role) if ctx.profile else False, role, audit)
        if second_factor:
            enforce_second_factor(ctx, audit)
        return ctx

    _exact_role_dep.__name__ = f"require_exact_role_{role}{'_2fa' if second_factor else ''}"
    return _exact_role_dep

"""Two-factor authentication endpoints.

Enrollment (``setup`` then ``verify``) is open to super_admins only and does
not itself require a second factor. ``verify-login`` is the login-time check
that unlocks 2FA-gated routes for the current session; it is guarded by the
failed-attempt lockout as well as the 2FA rate-limit tier.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lostfound_admin.api.deps import (
    AdminContext,
    get_audit_logger,
    get_lockout_tracker,
    get_session_store,
    get_totp_engine,
    require_admin,
    require_role,
)
from lostfound_admin.database import get_db
from lostfound_admin.errors import DependencyFailure, RateLimited, ValidationFailure
from lostfound_admin.middleware.monitoring import record_twofa_attempt
from lostfound_admin.middleware.rate_limit import two_fa_limit
from lostfound_admin.schemas.admin_user import MessageResponse
from lostfound_admin.schemas.twofa import (
    TwoFACheckResponse,
    TwoFAEnableRequest,
    TwoFALoginRequest,
    TwoFALoginResponse,
    TwoFASetupResponse,
)
from lostfound_admin.services.audit import AuditLogger
from lostfound_admin.services.lockout import AttemptLockoutTracker
from lostfound_admin.services.sessions import SessionVerificationStore, requires_second_factor
from lostfound_admin.services.totp import TotpEngine
from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.logger import logger
from lostfound_admin.utils.roles import SUPER_ADMIN

router = APIRouter(prefix="/admin/2fa", tags=["admin-2fa"])


@router.post("/setup", response_model=TwoFASetupResponse)
@two_fa_limit
def setup_two_fa(
    request: Request,
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN)),
    totp: TotpEngine = Depends(get_totp_engine),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Start 2FA enrollment.

    Returns a fresh secret and its ``otpauth://`` URI. Nothing is stored until
    the admin proves possession of the secret via ``/admin/2fa/verify``.
    """
    profile = ctx.profile

    with audit.scope(ctx, "2FA_SETUP_INITIATED", "security", resource_id=profile.id):
        if profile.twofa_confirmed:
            raise ValidationFailure("2FA is already enabled for this account", code="ALREADY_ENABLED")

        enrollment = totp.enroll(profile.email)
        return TwoFASetupResponse(
            secret=enrollment.secret,
            enrollmentUri=enrollment.enrollment_uri,
            message="Scan the code with your authenticator app, then confirm with a 6-digit code",
        )


@router.post("/verify", response_model=MessageResponse)
@two_fa_limit
def enable_two_fa(
    request: Request,
    body: TwoFAEnableRequest,
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN)),
    db: Session = Depends(get_db),
    totp: TotpEngine = Depends(get_totp_engine),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Confirm enrollment with a code from the new secret and switch 2FA on"""
    profile = ctx.profile

    with audit.scope(ctx, "2FA_ENABLED", "security", resource_id=profile.id):
        # Replacing a confirmed secret goes through /disable, which needs a verified session
        if profile.twofa_confirmed:
            raise ValidationFailure("2FA is already enabled for this account", code="ALREADY_ENABLED")

        if not totp.check(body.secret, body.token):
            raise ValidationFailure("Invalid verification code", code="INVALID_CODE")

        now = utcnow()
        profile.twofa_secret = body.secret
        profile.twofa_enabled = True
        profile.twofa_verified_at = now
        db.commit()

        logger.info("2FA enabled", extra={"admin_id": profile.id, "action": "2FA_ENABLED"})
        return MessageResponse(success=True, message="2FA has been enabled")


@router.post("/verify-login", response_model=TwoFALoginResponse)
@two_fa_limit
def verify_login(
    request: Request,
    body: Optional[TwoFALoginRequest] = None,
    ctx: AdminContext = Depends(require_admin),
    totp: TotpEngine = Depends(get_totp_engine),
    lockout: AttemptLockoutTracker = Depends(get_lockout_tracker),
    sessions: SessionVerificationStore = Depends(get_session_store),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Check a login-time 2FA code and mark the session verified.

    - admins without 2FA: ``{"success": true, "required": false}``
    - every code submission counts against the lockout, valid or not
    - the third invalid code inside the window locks the account for the window
    - while locked, codes are refused with ``429 RATE_LIMITED`` without being checked
    """
    profile = ctx.profile
    token = body.token if body else None

    with audit.scope(ctx, "2FA_VERIFY_LOGIN", "authentication", resource_id=profile.id) as entry:
        if not requires_second_factor(profile):
            entry.metadata["required"] = False
            return TwoFALoginResponse(success=True, required=False, message="2FA not required")

        if not token:
            raise ValidationFailure("Verification code is required", code="INVALID_REQUEST")

        if not profile.twofa_secret:
            logger.error("2FA enabled without a stored secret", extra={"admin_id": profile.id})
            raise DependencyFailure("2FA is not configured correctly", code="2FA_CONFIG_ERROR")

        now = utcnow()
        state = lockout.register_attempt(profile.id, now)
        entry.metadata["attempt_count"] = state.attempt_count

        if state.is_locked(now):
            record_twofa_attempt("locked")
            entry.metadata["locked_until"] = state.locked_until.isoformat()
            raise RateLimited(
                "Too many failed attempts. Please try again later.",
                retry_after=state.retry_after(now),
            )

        if totp.check(profile.twofa_secret, token, at=now):
            lockout.reset_attempts(profile.id, now)
            sessions.mark_verified(ctx.session_key, now)
            record_twofa_attempt("success")
            return TwoFALoginResponse(success=True, required=True, message="2FA verified")

        if state.attempt_count >= lockout.max_attempts:
            locked = lockout.lock_out(profile.id, now)
            record_twofa_attempt("lockout")
            entry.action = "2FA_LOCKOUT"
            entry.metadata["locked_until"] = (now + lockout.window).isoformat()
            logger.warning(
                "Admin locked out after repeated invalid 2FA codes",
                extra={"admin_id": profile.id, "action": "2FA_LOCKOUT", "request_id": ctx.request_id},
            )
            raise RateLimited(
                "Too many failed attempts. Account temporarily locked.",
                retry_after=locked.retry_after(now) or int(lockout.window.total_seconds()),
            )

        record_twofa_attempt("invalid")
        raise ValidationFailure(
            "Invalid verification code",
            code="INVALID_CODE",
            attemptsRemaining=max(0, lockout.max_attempts - state.attempt_count),
        )


@router.post("/disable", response_model=MessageResponse)
@two_fa_limit
def disable_two_fa(
    request: Request,
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN, second_factor=True)),
    db: Session = Depends(get_db),
    lockout: AttemptLockoutTracker = Depends(get_lockout_tracker),
    sessions: SessionVerificationStore = Depends(get_session_store),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Switch 2FA off and discard the secret (requires a verified session)"""
    profile = ctx.profile

    with audit.scope(ctx, "2FA_DISABLED", "security", resource_id=profile.id):
        if not profile.twofa_enabled:
            raise ValidationFailure("2FA is not enabled for this account", code="NOT_ENABLED")

        profile.twofa_secret = None
        profile.twofa_enabled = False
        profile.twofa_verified_at = None
        db.commit()

        lockout.reset_attempts(profile.id)
        sessions.clear(ctx.session_key)

        logger.info("2FA disabled", extra={"admin_id": profile.id, "action": "2FA_DISABLED"})
        return MessageResponse(success=True, message="2FA has been disabled")


@router.post("/check", response_model=TwoFACheckResponse)
@two_fa_limit
def check_two_fa(
    request: Request,
    ctx: AdminContext = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Whether this admin must enter a code, and whether this session already has"""
    profile = ctx.profile

    with audit.scope(ctx, "2FA_CHECK", "authentication", resource_id=profile.id):
        return TwoFACheckResponse(
            requiresTwoFA=requires_second_factor(profile),
            role=profile.role,
            sessionVerified=ctx.verified_2fa_at is not None,
        )

"""Admin sign-in endpoints"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lostfound_admin.api.deps import (
    AdminContext,
    get_audit_logger,
    get_session_store,
    require_admin,
)
from lostfound_admin.database import get_db
from lostfound_admin.middleware.rate_limit import admin_limit, admin_verify_limit
from lostfound_admin.models.login_history import AdminLoginHistory
from lostfound_admin.schemas.admin_user import (
    AdminProfileResponse,
    AdminSummary,
    AdminVerifyResponse,
    MessageResponse,
)
from lostfound_admin.services.audit import AuditLogger
from lostfound_admin.services.sessions import (
    SecondFactorState,
    SessionVerificationStore,
    second_factor_state,
)
from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.logger import logger

router = APIRouter(prefix="/admin/auth", tags=["admin-auth"])


@router.get("/health")
def auth_health():
    """Admin backend liveness (no auth)"""
    return {"status": "ok", "service": "admin-auth", "timestamp": utcnow().isoformat()}


@router.post("/verify", response_model=AdminVerifyResponse)
@admin_verify_limit
def verify_admin(
    request: Request,
    ctx: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Confirm the caller is an active admin and record the sign-in.

    ``requiresTwoFA`` tells the UI to collect a code for
    ``/admin/2fa/verify-login`` before opening the dashboard.
    """
    profile = ctx.profile

    with audit.scope(ctx, "LOGIN", "authentication", resource_id=profile.id) as entry:
        try:
            db.add(AdminLoginHistory(
                admin_id=profile.id,
                admin_email=profile.email,
                ip_address=ctx.client_ip,
                user_agent=ctx.user_agent,
                success=True,
            ))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                f"Failed to record login history: {exc}",
                extra={"admin_id": profile.id, "request_id": ctx.request_id},
            )

        requires_two_fa = second_factor_state(profile, ctx.verified_2fa_at) is SecondFactorState.REQUIRED
        entry.metadata["requires_2fa"] = requires_two_fa

        logger.info(
            f"Admin signed in: {profile.email}",
            extra={"admin_id": profile.id, "action": "LOGIN", "request_id": ctx.request_id},
        )
        return AdminVerifyResponse(
            success=True,
            admin=AdminSummary.model_validate(profile),
            requiresTwoFA=requires_two_fa,
        )


@router.get("/profile", response_model=AdminProfileResponse)
@admin_limit
def get_profile(
    request: Request,
    ctx: AdminContext = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Current admin profile (no secrets)"""
    profile = ctx.profile

    with audit.scope(ctx, "VIEW_PROFILE", "admin_profile", resource_id=profile.id):
        return AdminProfileResponse(
            id=profile.id,
            email=profile.email,
            role=profile.role,
            isActive=profile.is_active,
            twoFAEnabled=profile.twofa_confirmed,
            createdAt=profile.created_at,
        )


@router.post("/logout", response_model=MessageResponse)
@admin_limit
def logout(
    request: Request,
    ctx: AdminContext = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit_logger),
    sessions: SessionVerificationStore = Depends(get_session_store),
):
    """
    Record the sign-out and forget this session's second-factor verification.

    The identity-service session itself is ended by the client.
    """
    with audit.scope(ctx, "LOGOUT", "authentication", resource_id=ctx.profile.id):
        sessions.clear(ctx.session_key)
        return MessageResponse(success=True, message="Logged out successfully")

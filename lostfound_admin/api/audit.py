"""Audit trail and login history endpoints (super_admin only)"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from lostfound_admin.api.deps import AdminContext, get_audit_logger, require_role
from lostfound_admin.database import get_db
from lostfound_admin.middleware.rate_limit import admin_limit
from lostfound_admin.models.audit_log import AuditLog
from lostfound_admin.models.login_history import AdminLoginHistory
from lostfound_admin.schemas.audit_log import (
    AuditLogListResponse,
    AuditLogResponse,
    LoginHistoryListResponse,
    LoginHistoryResponse,
)
from lostfound_admin.services.audit import ROUTINE_ACTIONS, AuditLogger
from lostfound_admin.utils.roles import SUPER_ADMIN

router = APIRouter(prefix="/admin", tags=["admin-audit"])


@router.get("/audit-logs", response_model=AuditLogListResponse)
@admin_limit
def query_audit_logs(
    request: Request,
    admin_id: Optional[str] = Query(None, description="Filter by admin ID"),
    action: Optional[str] = Query(None, description="Filter by action (substring, case-insensitive)"),
    search: Optional[str] = Query(None, description="Search action and resource type"),
    date_from: Optional[datetime] = Query(None, description="Entries at or after (ISO 8601)"),
    date_to: Optional[datetime] = Query(None, description="Entries at or before (ISO 8601)"),
    important_only: bool = Query(False, description="Hide routine read-only actions"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of entries to return"),
    offset: int = Query(0, ge=0, description="Number of entries to skip"),
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN, second_factor=True)),
    db: Session = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Query the audit trail, newest first.

    The read itself is audited, after the query runs, so it is not part of
    its own result page.
    """
    with audit.scope(ctx, "READ_AUDIT_LOGS", "audit") as entry:
        entry.metadata.update({
            "limit": limit,
            "offset": offset,
            "filters": {"admin": admin_id, "action": action, "search": search, "importantOnly": important_only},
        })

        query = db.query(AuditLog)

        if admin_id:
            query = query.filter(AuditLog.admin_id == admin_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(AuditLog.action.ilike(pattern), AuditLog.resource_type.ilike(pattern)))
        if date_from:
            query = query.filter(AuditLog.created_at >= date_from)
        if date_to:
            query = query.filter(AuditLog.created_at <= date_to)
        if important_only:
            query = query.filter(AuditLog.action.notin_(ROUTINE_ACTIONS))

        total = query.count()
        logs = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()

        return AuditLogListResponse(
            logs=[AuditLogResponse.model_validate(log) for log in logs],
            total=total,
            limit=limit,
            offset=offset,
        )


@router.get("/login-history", response_model=LoginHistoryListResponse)
@admin_limit
def query_login_history(
    request: Request,
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of entries to return"),
    offset: int = Query(0, ge=0, description="Number of entries to skip"),
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN, second_factor=True)),
    db: Session = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Admin sign-ins, newest first"""
    with audit.scope(ctx, "READ_LOGIN_HISTORY", "audit") as entry:
        entry.metadata.update({"limit": limit, "offset": offset})

        query = db.query(AdminLoginHistory)
        total = query.count()
        logins = (
            query.order_by(AdminLoginHistory.login_at.desc(), AdminLoginHistory.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return LoginHistoryListResponse(
            logins=[LoginHistoryResponse.model_validate(login) for login in logins],
            total=total,
            limit=limit,
            offset=offset,
        )

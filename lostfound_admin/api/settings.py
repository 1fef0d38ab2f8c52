"""System settings endpoints"""
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lostfound_admin.api.deps import (
    AdminContext,
    get_audit_logger,
    get_settings_cache,
    require_role,
)
from lostfound_admin.database import get_db
from lostfound_admin.middleware.rate_limit import admin_limit
from lostfound_admin.models.system_setting import SystemSetting
from lostfound_admin.schemas.setting import SettingResponse, SettingsUpdateResponse, SettingUpdate
from lostfound_admin.services.audit import AuditLogger
from lostfound_admin.services.settings_cache import SettingsCache
from lostfound_admin.utils.logger import logger
from lostfound_admin.utils.roles import ANALYST, SUPER_ADMIN

router = APIRouter(prefix="/admin/settings", tags=["admin-settings"])


@router.get("", response_model=List[SettingResponse])
@admin_limit
def list_settings(
    request: Request,
    ctx: AdminContext = Depends(require_role(ANALYST, second_factor=True)),
    db: Session = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    List every system setting (any admin role).

    Values are read from the store, not the cache, so admins always see what
    is persisted.
    """
    with audit.scope(ctx, "READ_SETTINGS", "settings"):
        settings_rows = db.query(SystemSetting).order_by(SystemSetting.setting_key.asc()).all()
        return [SettingResponse.from_setting(row) for row in settings_rows]


@router.put("", response_model=SettingsUpdateResponse)
@admin_limit
def update_settings(
    request: Request,
    updates: List[SettingUpdate],
    ctx: AdminContext = Depends(require_role(SUPER_ADMIN, second_factor=True)),
    db: Session = Depends(get_db),
    cache: SettingsCache = Depends(get_settings_cache),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Update existing settings (super_admin only).

    Body is a list of ``{"key", "value"}``; values are stored as-is. Unknown
    keys are reported back and left alone. The settings cache is invalidated
    so the change applies to the next request.
    """
    with audit.scope(ctx, "UPDATE_SETTINGS", "settings") as entry:
        keys = [update.key for update in updates]
        entry.metadata["updatedKeys"] = keys

        existing = {
            row.setting_key: row
            for row in db.query(SystemSetting).filter(SystemSetting.setting_key.in_(keys)).all()
        } if keys else {}

        unknown = []
        for update in updates:
            row = existing.get(update.key)
            if row is None:
                unknown.append(update.key)
                continue
            row.setting_value = update.value
            row.updated_by = ctx.profile.id

        db.commit()
        cache.invalidate()

        if unknown:
            entry.metadata["unknownKeys"] = unknown
        logger.info(
            f"Settings updated: {', '.join(sorted(existing))}",
            extra={"admin_id": ctx.profile.id, "action": "UPDATE_SETTINGS"},
        )
        return SettingsUpdateResponse(success=True, updated=len(existing), unknownKeys=unknown)

"""Pydantic schemas for request/response validation"""
from lostfound_admin.schemas.admin_user import (
    AdminProfileResponse,
    AdminSummary,
    AdminVerifyResponse,
    MessageResponse,
)
from lostfound_admin.schemas.audit_log import (
    AuditLogListResponse,
    AuditLogResponse,
    LoginHistoryListResponse,
    LoginHistoryResponse,
)
from lostfound_admin.schemas.setting import SettingResponse, SettingsUpdateResponse, SettingUpdate
from lostfound_admin.schemas.twofa import (
    TwoFACheckResponse,
    TwoFAEnableRequest,
    TwoFALoginRequest,
    TwoFALoginResponse,
    TwoFASetupResponse,
)

__all__ = [
    "AdminProfileResponse",
    "AdminSummary",
    "AdminVerifyResponse",
    "MessageResponse",
    "AuditLogListResponse",
    "AuditLogResponse",
    "LoginHistoryListResponse",
    "LoginHistoryResponse",
    "SettingResponse",
    "SettingsUpdateResponse",
    "SettingUpdate",
    "TwoFACheckResponse",
    "TwoFAEnableRequest",
    "TwoFALoginRequest",
    "TwoFALoginResponse",
    "TwoFASetupResponse",
]

"""Database models"""
from lostfound_admin.models.admin_user import AdminUser
from lostfound_admin.models.audit_log import AuditLog
from lostfound_admin.models.login_history import AdminLoginHistory
from lostfound_admin.models.system_setting import SystemSetting
from lostfound_admin.models.twofa_attempt import TwoFAAttempt

__all__ = ["AdminLoginHistory", "AdminUser", "AuditLog", "SystemSetting", "TwoFAAttempt"]

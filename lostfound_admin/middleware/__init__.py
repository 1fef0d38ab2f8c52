"""Middleware modules for production-ready features"""
from lostfound_admin.middleware.maintenance import MaintenanceModeMiddleware
from lostfound_admin.middleware.monitoring import (
    MonitoringMiddleware,
    record_audit_write_failure,
    record_auth_failure,
    record_settings_reload,
    record_twofa_attempt,
)
from lostfound_admin.middleware.rate_limit import LoginThrottle, limiter

__all__ = [
    "MaintenanceModeMiddleware",
    "MonitoringMiddleware",
    "record_audit_write_failure",
    "record_auth_failure",
    "record_settings_reload",
    "record_twofa_attempt",
    "LoginThrottle",
    "limiter",
]

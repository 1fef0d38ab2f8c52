"""API error taxonomy.

Every failure that crosses the HTTP boundary is one of these kinds. Each
carries the status code, a machine-readable ``code`` that UI callers branch
on, and a human-readable ``error`` message. Extra keyword arguments are
merged into the JSON body (e.g. ``attemptsRemaining``, ``retryAfter``).
"""
from typing import Any, Dict, Optional


class AdminAPIError(Exception):
    """Base class for errors rendered as ``{"error": ..., "code": ...}``"""

    status_code: int = 500
    default_code: str = "SERVER_ERROR"

    def __init__(self, error: str, code: Optional[str] = None, **extra: Any):
        super().__init__(error)
        self.error = error
        self.code = code or self.default_code
        self.extra: Dict[str, Any] = extra

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "code": self.code, **self.extra}


class AuthenticationFailure(AdminAPIError):
    """Bad, missing or expired credential, or a pending second factor (401)"""

    status_code = 401
    default_code = "INVALID_TOKEN"


class AuthorizationFailure(AdminAPIError):
    """Authenticated, but not allowed (403)"""

    status_code = 403
    default_code = "FORBIDDEN"


class ValidationFailure(AdminAPIError):
    """Malformed or unacceptable request (400)"""

    status_code = 400
    default_code = "INVALID_REQUEST"


class RateLimited(AdminAPIError):
    """Too many requests or attempts (429); carries a retry hint in seconds"""

    status_code = 429
    default_code = "RATE_LIMITED"

    def __init__(self, error: str, retry_after: int, code: Optional[str] = None, **extra: Any):
        super().__init__(error, code, retryAfter=retry_after, **extra)
        self.retry_after = retry_after

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class DependencyFailure(AdminAPIError):
    """The identity service or the backing store failed (500, no internal detail)"""

    status_code = 500
    default_code = "AUTH_ERROR"

"""Request metadata helpers: client address, user agent, log redaction"""
from typing import Any, Dict, Optional

from starlette.requests import Request

from lostfound_admin.config import settings

SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "key",
    "api_key",
    "access_token",
    "refresh_token",
    "twofa_secret",
)


def get_client_ip(request: Request, trust_proxy_headers: Optional[bool] = None) -> str:
    """
    Resolve the caller's address.

    Priority (when proxy headers are trusted):
    1. First hop of X-Forwarded-For
    2. X-Real-IP
    3. Socket peer address
    """
    if trust_proxy_headers is None:
        trust_proxy_headers = settings.TRUST_PROXY_HEADERS

    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop

        real_ip = (request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or "unknown"


def sanitize_metadata(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Redact values whose key looks like a credential"""
    if not data:
        return {}

    sanitized = dict(data)
    for key in sanitized:
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
    return sanitized

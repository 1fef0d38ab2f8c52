"""Rate limiting middleware for API protection"""
import math
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from lostfound_admin.config import settings
from lostfound_admin.utils.client import get_client_ip
from lostfound_admin.utils.logger import logger


def get_identifier(request: Request) -> str:
    """Rate limits are keyed by client address (proxy-aware)"""
    return get_client_ip(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_identifier,
    default_limits=[settings.RATE_LIMIT_GENERAL],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit tiers
RATE_LIMITS = {
    # Every route not listed below (health checks are exempt)
    "general": settings.RATE_LIMIT_GENERAL,

    # Admin data routes, profile and logout; one shared budget per address
    "admin": settings.RATE_LIMIT_ADMIN,

    # Admin sign-in verification; only enforced in production
    "admin_verify": settings.RATE_LIMIT_ADMIN_VERIFY,

    # Failed credential verifications, see LoginThrottle
    "login": settings.RATE_LIMIT_LOGIN,

    # All /admin/2fa routes; one shared budget per address
    "two_fa": settings.RATE_LIMIT_TWO_FA,
}


admin_limit = limiter.shared_limit(RATE_LIMITS["admin"], scope="admin")
two_fa_limit = limiter.shared_limit(RATE_LIMITS["two_fa"], scope="two_fa")
admin_verify_limit = limiter.limit(
    RATE_LIMITS["admin_verify"],
    exempt_when=lambda: not settings.is_production,
)


class LoginThrottle:
    """Counts failed credential verifications per client address.

    Unlike the slowapi tiers only failures are counted: successful sign-ins
    never consume the budget. Once the ceiling is reached every bearer
    authenticated request from that address is refused until the window ends.
    """

    namespace = "login"

    def __init__(self, limit: str, storage_uri: str = "memory://", enabled: bool = True):
        self.item = parse(limit)
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.enabled = enabled

    def is_blocked(self, client_ip: str) -> bool:
        if not self.enabled:
            return False
        return not self.strategy.test(self.item, self.namespace, client_ip)

    def retry_after(self, client_ip: str) -> int:
        reset_time = self.strategy.get_window_stats(self.item, self.namespace, client_ip)[0]
        return max(1, math.ceil(reset_time - time.time()))

    def register_failure(self, client_ip: str) -> None:
        if self.enabled:
            self.strategy.hit(self.item, self.namespace, client_ip)


def _seconds_until_reset(request: Request, exc: RateLimitExceeded) -> int:
    # slowapi stores the (limit, storage keys) pair it just evaluated on request.state
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is None:
        return exc.limit.limit.get_expiry()
    item, keys = view_rate_limit
    reset_time = limiter.limiter.get_window_stats(item, *keys)[0]
    return max(1, math.ceil(reset_time - time.time()))


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi rejections in the API error format"""
    retry_after = _seconds_until_reset(request, exc)
    logger.warning(
        f"Rate limit exceeded ({exc.detail})",
        extra={
            "path": request.url.path,
            "method": request.method,
            "client_ip": get_client_ip(request),
            "code": "RATE_LIMITED",
        }
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please try again later.",
            "code": "RATE_LIMITED",
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )

"""Platform-wide maintenance mode gate"""
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from lostfound_admin.utils.logger import logger

DEFAULT_MAINTENANCE_MESSAGE = "We are currently performing maintenance. Please check back soon."

# Admins must be able to switch maintenance off again
BYPASS_PREFIXES = ("/admin", "/health")


def bypasses_maintenance(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in BYPASS_PREFIXES)


class MaintenanceModeMiddleware(BaseHTTPMiddleware):
    """Answer 503 for public routes while ``maintenance_mode`` is on.

    Reads go through the settings cache held on ``app.state``. Any error
    reading the flag lets the request through.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if bypasses_maintenance(request.url.path):
            return await call_next(request)

        cache = getattr(request.app.state, "settings_cache", None)
        if cache is None:
            return await call_next(request)

        try:
            enabled = await run_in_threadpool(cache.get, "maintenance_mode")
            if enabled is not True:
                return await call_next(request)
            message = await run_in_threadpool(cache.get, "maintenance_message")
        except Exception as exc:
            logger.error(f"Maintenance mode check failed: {exc}", extra={"path": request.url.path})
            return await call_next(request)

        return JSONResponse(
            status_code=503,
            content={
                "error": "Service temporarily unavailable",
                "message": message or DEFAULT_MAINTENANCE_MESSAGE,
                "maintenance": True,
                "code": "MAINTENANCE_MODE",
            },
        )

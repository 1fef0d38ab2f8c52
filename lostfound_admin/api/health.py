"""Health check endpoints"""
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from lostfound_admin.config import settings
from lostfound_admin.database import get_db
from lostfound_admin.middleware.rate_limit import limiter
from lostfound_admin.utils.clock import utcnow

router = APIRouter(tags=["health"])

SERVICE_NAME = "lostfound-admin"
VERSION = "0.1.0"

# Track startup time
STARTUP_TIME = time.time()


@router.get("/health")
@limiter.exempt
def health_check():
    """
    Basic health check endpoint

    Returns 200 if the process is running. Never blocked by maintenance mode.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": utcnow().isoformat()
    }


@router.get("/health/ready")
@limiter.exempt
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - verifies the database is reachable

    Returns 200 if ready to serve traffic, 503 if not ready
    """
    checks: Dict[str, Any] = {
        "database": False,
        "database_latency_ms": None
    }

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        checks["database"] = True
        checks["database_latency_ms"] = round(latency_ms, 2)
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "checks": checks,
                "message": "Database check failed" if settings.is_production else f"Database check failed: {e}"
            }
        )

    if latency_ms > 1000:  # More than 1 second
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "degraded",
                "checks": checks,
                "message": "Database latency is high"
            }
        )

    return {
        "status": "ready",
        "checks": checks,
        "timestamp": utcnow().isoformat()
    }


@router.get("/health/live")
@limiter.exempt
def liveness_check():
    """
    Liveness check - verifies service is alive

    Used by Kubernetes liveness probe
    """
    return {
        "status": "alive",
        "uptime_seconds": round(time.time() - STARTUP_TIME, 2),
        "timestamp": utcnow().isoformat()
    }


@router.get("/api/health")
def platform_health():
    """Public platform health; answers 503 while maintenance mode is on"""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "environment": settings.ENVIRONMENT,
        "timestamp": utcnow().isoformat()
    }

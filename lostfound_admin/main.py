"""FastAPI application entry point"""
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from lostfound_admin.api import audit, auth, health, settings as settings_api, twofa
from lostfound_admin.config import settings
from lostfound_admin.database import Base, SessionLocal, engine
from lostfound_admin.errors import AdminAPIError, DependencyFailure
from lostfound_admin.middleware.maintenance import MaintenanceModeMiddleware
from lostfound_admin.middleware.monitoring import MonitoringMiddleware
from lostfound_admin.middleware.rate_limit import LoginThrottle, limiter, rate_limit_exceeded_handler
from lostfound_admin.services.audit import FAILURE, AuditLogger
from lostfound_admin.services.identity import build_identity_verifier
from lostfound_admin.services.lockout import AttemptLockoutTracker
from lostfound_admin.services.profiles import AdminProfileResolver
from lostfound_admin.services.sessions import SessionVerificationStore
from lostfound_admin.services.settings_cache import SettingsCache, database_loader
from lostfound_admin.services.totp import TotpEngine
from lostfound_admin.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL)

VERSION = "0.1.0"


def init_services(app: FastAPI) -> None:
    """Construct the shared services once and publish them on ``app.state``"""
    app.state.identity_verifier = build_identity_verifier(settings)
    app.state.totp = TotpEngine(window=settings.TOTP_WINDOW, issuer=settings.TOTP_ISSUER)
    app.state.lockout = AttemptLockoutTracker(
        SessionLocal,
        max_attempts=settings.TWO_FA_MAX_ATTEMPTS,
        window=timedelta(minutes=settings.TWO_FA_LOCKOUT_MINUTES),
    )
    app.state.sessions = SessionVerificationStore(ttl=settings.TWO_FA_SESSION_TTL_SECONDS)
    app.state.audit = AuditLogger(SessionLocal)
    app.state.profiles = AdminProfileResolver()
    app.state.settings_cache = SettingsCache(
        database_loader(SessionLocal),
        ttl=settings.SETTINGS_CACHE_TTL_SECONDS,
    )
    app.state.login_throttle = LoginThrottle(
        settings.RATE_LIMIT_LOGIN,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        enabled=settings.RATE_LIMIT_ENABLED,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    Base.metadata.create_all(bind=engine)
    init_services(app)
    logger.info(
        f"Lost & Found admin backend starting up (version {VERSION}, "
        f"environment {settings.ENVIRONMENT}, identity provider {settings.IDENTITY_PROVIDER}, "
        f"rate limiting {settings.RATE_LIMIT_ENABLED}, monitoring {settings.METRICS_ENABLED})"
    )
    yield
    # Shutdown
    logger.info("Lost & Found admin backend shutting down")


# Create FastAPI app
app = FastAPI(
    title="Lost & Found Admin",
    description="Admin authentication, role enforcement, two-factor security and audit trail",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ===== Middleware Setup =====
# Added innermost first: maintenance, rate limiting, monitoring, CORS

app.add_middleware(MaintenanceModeMiddleware)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Monitoring middleware
if settings.METRICS_ENABLED:
    app.add_middleware(MonitoringMiddleware)

    # Prometheus metrics
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[settings.METRICS_PATH, "/health", "/health/ready", "/health/live"],
        inprogress_name="lostfound_admin_requests_inprogress",
        inprogress_labels=True
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===== Route Setup =====

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(twofa.router)
app.include_router(settings_api.router)
app.include_router(audit.router)


@app.get("/")
@limiter.exempt
def root():
    """Root endpoint"""
    return {
        "service": "Lost & Found Admin",
        "version": VERSION,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None
    }


# ===== Error Handlers =====

@app.exception_handler(AdminAPIError)
async def admin_api_error_handler(request: Request, exc: AdminAPIError):
    """Render API errors as ``{"error", "code", ...}``"""
    log = logger.error if isinstance(exc, DependencyFailure) else logger.warning
    log(
        f"{exc.code}: {exc.error}",
        extra={
            "code": exc.code,
            "path": request.url.path,
            "method": request.method,
            "request_id": getattr(request.state, "request_id", None),
        }
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query strings are client errors"""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "code": "INVALID_REQUEST",
            "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": code},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught errors"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "request_id": getattr(request.state, "request_id", None),
        },
        exc_info=True
    )

    # Admin requests that failed before writing their own audit entry
    ctx = getattr(request.state, "admin_context", None)
    audit_logger = getattr(request.app.state, "audit", None)
    if ctx is not None and audit_logger is not None and not ctx.audit.recorded:
        await run_in_threadpool(
            audit_logger.record_for,
            ctx,
            action="UNHANDLED_ERROR",
            resource_type="request",
            outcome=FAILURE,
            metadata={"endpoint": ctx.endpoint, "error": type(exc).__name__},
        )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "SERVER_ERROR",
            "message": "An unexpected error occurred. Please contact support."
            if settings.is_production else str(exc),
        }
    )

"""Monitoring and observability middleware"""
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from lostfound_admin.utils.logger import logger


# ===== Prometheus Metrics =====

# Request metrics
http_requests_total = Counter(
    "lostfound_admin_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "lostfound_admin_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

# Error metrics
http_errors_total = Counter(
    "lostfound_admin_http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "status"]
)

# Security metrics
authentication_failures_total = Counter(
    "lostfound_admin_authentication_failures_total",
    "Total authentication and authorization failures",
    ["code"]  # MISSING_TOKEN, INVALID_TOKEN, FORBIDDEN, 2FA_REQUIRED, ...
)

twofa_attempts_total = Counter(
    "lostfound_admin_twofa_attempts_total",
    "Login-time second-factor attempts",
    ["outcome"]  # success, invalid, locked, lockout
)

audit_write_failures_total = Counter(
    "lostfound_admin_audit_write_failures_total",
    "Audit entries that could not be persisted"
)

settings_reloads_total = Counter(
    "lostfound_admin_settings_reloads_total",
    "System settings cache reloads",
    ["outcome"]  # success, failure
)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for monitoring and metrics collection"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics"""
        start_time = time.time()

        # Extract request details
        method = request.method
        endpoint = request.url.path

        # Add request ID for tracing
        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:16]}"
        request.state.request_id = request_id

        try:
            # Process request
            response = await call_next(request)
            status = response.status_code

            # Record metrics
            duration = time.time() - start_time
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

            # Log slow requests
            if duration > 1.0:  # More than 1 second
                logger.warning(
                    f"Slow request detected: {method} {endpoint} ({duration:.3f}s, status {status})",
                    extra={
                        "request_id": request_id,
                        "method": method,
                        "path": endpoint,
                    }
                )

            # Track errors
            if status >= 400:
                http_errors_total.labels(
                    method=method,
                    endpoint=endpoint,
                    status=status
                ).inc()

            # Add custom headers
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration:.3f}s"

            return response

        except Exception as e:
            # Record error metrics
            duration = time.time() - start_time
            http_errors_total.labels(
                method=method,
                endpoint=endpoint,
                status=500
            ).inc()

            logger.error(
                f"Request failed: {method} {endpoint} after {duration:.3f}s: {e}",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": endpoint,
                },
                exc_info=True
            )
            raise


def record_auth_failure(code: str):
    """Record authentication/authorization failure"""
    authentication_failures_total.labels(code=code).inc()


def record_twofa_attempt(outcome: str):
    """Record login-time 2FA attempt outcome"""
    twofa_attempts_total.labels(outcome=outcome).inc()


def record_audit_write_failure():
    audit_write_failures_total.inc()


def record_settings_reload(outcome: str):
    settings_reloads_total.labels(outcome=outcome).inc()

"""
Security Module for the Grant Portal API

Implements:
- Rate limiting (IP-based using slowapi), stricter on submissions
- Security headers middleware with request ID generation for audit logging
- Request size validation
- Secure error response handling

Configuration via environment variables:
- RATE_LIMIT_PER_MINUTE: Requests per minute per IP (default: 100)
- SUBMIT_RATE_LIMIT: Limit for POST /submit (default: 10/minute)
- MAX_REQUEST_SIZE_MB: Maximum request body size in MB (default: 1)
- TRUSTED_PROXY_COUNT: Proxies in front of the app (default: 1)
- ENVIRONMENT: 'production' or 'development' (affects error detail exposure)
"""

import os
import uuid
import time
import logging
import ipaddress
from typing import Callable, Optional
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
DEFAULT_RATE_LIMIT = f"{RATE_LIMIT_PER_MINUTE}/minute"
SUBMIT_RATE_LIMIT = os.getenv("SUBMIT_RATE_LIMIT", "10/minute")

MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "1"))
MAX_REQUEST_SIZE_BYTES = MAX_REQUEST_SIZE_MB * 1024 * 1024

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))

# Responses under these prefixes carry applicant data and must not be cached
_NO_STORE_PREFIXES = ("/api/", "/submit")


# =============================================================================
# Rate Limiter Setup
# =============================================================================

def _is_valid_ip(ip_str: str) -> bool:
    """Validate that a string is a valid IP address (IPv4 or IPv6)."""
    if not ip_str or len(ip_str) > 45:  # Max length for IPv6
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request with anti-spoofing protection.

    Uses the "rightmost non-trusted" entry of X-Forwarded-For: proxies
    append the connecting IP, so only the entries added by our own
    TRUSTED_PROXY_COUNT proxies and the one just before them are trusted.

    Args:
        request: The FastAPI request object

    Returns:
        The client IP address, or "unknown" if not determinable
    """
    direct_ip = request.client.host if request.client else None

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > TRUSTED_PROXY_COUNT:
                client_ip = ips[-(TRUSTED_PROXY_COUNT + 1)]
            else:
                client_ip = ips[0]

            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(
                f"Invalid IP in X-Forwarded-For header: {client_ip[:50]!r}",
                extra={"direct_ip": direct_ip},
            )

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning(
            f"Invalid X-Real-IP header: {real_ip[:50]!r}",
            extra={"direct_ip": direct_ip},
        )

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",  # In-memory storage (use Redis for multi-instance)
    strategy="fixed-window",
)


def get_rate_limiter() -> Limiter:
    """Get the configured rate limiter instance."""
    return limiter


# =============================================================================
# Security Headers Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses and log every request.

    Headers added:
    - X-Frame-Options, X-Content-Type-Options, Referrer-Policy,
      Permissions-Policy
    - Strict-Transport-Security (production only)
    - X-Request-ID: Unique request identifier for audit logging
    - Cache-Control: no-store on API responses
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.start_time = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), payment=(), usb=()"
        )
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        response.headers["X-Request-ID"] = request_id

        if request.url.path.startswith(_NO_STORE_PREFIXES) and not response.headers.get(
            "Cache-Control"
        ):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

        duration = time.time() - request.state.start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s "
            f"request_id={request_id} client_ip={get_client_ip(request)}"
        )

        return response


# =============================================================================
# Request Size Limit Middleware
# =============================================================================

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Enforce request body size limits (MAX_REQUEST_SIZE_MB).
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={
                        "success": False,
                        "message": "Invalid Content-Length header",
                    },
                )
            if size > MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={
                        "success": False,
                        "message": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_MB}MB.",
                    },
                )

        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _cors_headers(request: Request, allowed_origins: list[str]) -> dict:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    headers = {"X-Request-ID": request_id}
    origin = request.headers.get("origin", "")
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_secure_exception_handler(allowed_origins: list[str]) -> Callable:
    """
    Create a handler for unhandled exceptions.

    Production responses carry a generic message only; development
    responses include the exception text.  The full error is always logged.
    """

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        request_id = headers["X-Request-ID"]

        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)} "
            f"request_id={request_id} path={request.url.path} "
            f"method={request.method} client_ip={get_client_ip(request)}",
            exc_info=True,
        )

        message = "Internal Server Error" if IS_PRODUCTION else str(exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": message, "request_id": request_id},
            headers=headers,
        )

    return secure_exception_handler


def create_rate_limit_exceeded_handler(allowed_origins: list[str]) -> Callable:
    """
    Create a rate limit exceeded handler with CORS support.
    """

    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        headers["Retry-After"] = "60"

        logger.warning(
            f"Rate limit exceeded: client_ip={get_client_ip(request)} "
            f"path={request.url.path} request_id={headers['X-Request-ID']}"
        )

        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "message": "Rate limit exceeded. Please slow down your requests.",
                "retry_after_seconds": 60,
            },
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(allowed_origins: list[str]) -> Callable:
    """
    Create an HTTP exception handler that keeps CORS headers and the request id.
    """

    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": headers["X-Request-ID"]},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Security Setup Function
# =============================================================================

def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """
    Configure all security middleware and handlers for a FastAPI application.

    Args:
        app: The FastAPI application instance
        allowed_origins: List of allowed CORS origins
    """
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(
        RateLimitExceeded,
        create_rate_limit_exceeded_handler(allowed_origins)
    )
    app.add_exception_handler(
        Exception,
        create_secure_exception_handler(allowed_origins)
    )
    app.add_exception_handler(
        HTTPException,
        create_http_exception_handler(allowed_origins)
    )

    logger.info(
        f"Security middleware configured: "
        f"rate_limit={RATE_LIMIT_PER_MINUTE}/min, "
        f"submit_rate_limit={SUBMIT_RATE_LIMIT}, "
        f"max_request_size={MAX_REQUEST_SIZE_MB}MB, "
        f"environment={ENVIRONMENT}"
    )


# =============================================================================
# Audit Logging Utilities
# =============================================================================

def log_security_event(
    event_type: str,
    request: Request,
    details: Optional[dict] = None
) -> None:
    """
    Log a security-relevant event for audit purposes.

    Args:
        event_type: Type of security event (e.g., 'submission_flagged')
        request: The request object
        details: Optional additional details to log
    """
    log_data = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if details:
        log_data |= details

    logger.warning(f"SECURITY_EVENT: {log_data}")

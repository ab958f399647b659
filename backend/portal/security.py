"""
Request hardening for the reporting portal API.

Every request gets an X-Request-ID, a body-size check and the standard
security headers.  slowapi rate-limits by client IP with a general limit,
a tighter limit on report writes, and the tightest on sign-in.  Error
responses carry the request id and never expose internals in production.

Environment:
- RATE_LIMIT_PER_MINUTE: general per-IP limit (default: 120)
- WRITE_RATE_LIMIT_PER_MINUTE: report save/submit limit (default: 30)
- MAX_REQUEST_SIZE_KB: largest accepted request body (default: 512)
- TRUSTED_PROXY_COUNT: proxies in front of the app (default: 1)
- ENVIRONMENT: 'production' hides error details and enables HSTS
"""

import ipaddress
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
WRITE_RATE_LIMIT_PER_MINUTE = int(os.getenv("WRITE_RATE_LIMIT_PER_MINUTE", "30"))
AUTH_RATE_LIMIT = "5/minute"

# Report bodies are narratives capped at 1500 characters plus allocation rows
MAX_REQUEST_SIZE_KB = int(os.getenv("MAX_REQUEST_SIZE_KB", "512"))

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=()",
}


# =============================================================================
# Client identification
# =============================================================================

def _parse_ip(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    if not value or len(value) > 45:
        return None
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    """Client address used as the rate-limit key and in audit logs.

    Only the hop added by the outermost trusted proxy is believed; anything
    further left in X-Forwarded-For is client-supplied.
    """
    forwarded = [
        part.strip()
        for part in request.headers.get("X-Forwarded-For", "").split(",")
        if part.strip()
    ]
    if forwarded:
        index = -(TRUSTED_PROXY_COUNT + 1) if len(forwarded) > TRUSTED_PROXY_COUNT else 0
        ip = _parse_ip(forwarded[index])
        if ip:
            return ip
        logger.warning("Ignoring malformed X-Forwarded-For entry %r", forwarded[index][:50])

    ip = _parse_ip(request.headers.get("X-Real-IP"))
    if ip:
        return ip
    peer = _parse_ip(request.client.host if request.client else None)
    return peer or "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[f"{RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri="memory://",
)


def rate_limit_auth():
    """Decorator for the sign-in endpoint."""
    return limiter.limit(AUTH_RATE_LIMIT)


def rate_limit_write():
    """Decorator for endpoints that save or submit a report."""
    return limiter.limit(f"{WRITE_RATE_LIMIT_PER_MINUTE}/minute")


# =============================================================================
# Middleware
# =============================================================================

class PortalRequestMiddleware(BaseHTTPMiddleware):
    """Tags the request with an id, enforces the body size limit, sets
    security headers on the response, and writes one access log line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id[:64]
        started = time.monotonic()

        rejection = _check_body_size(request)
        response = rejection if rejection is not None else await call_next(request)

        response.headers.update(_SECURITY_HEADERS)
        response.headers["X-Request-ID"] = request.state.request_id
        response.headers.setdefault("Cache-Control", "no-store")
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        logger.info(
            "%s %s -> %s in %.3fs request_id=%s client_ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            time.monotonic() - started,
            request.state.request_id,
            get_client_ip(request),
        )
        return response


def _check_body_size(request: Request) -> Optional[JSONResponse]:
    declared = request.headers.get("content-length")
    if declared is None:
        return None
    if not declared.isdigit():
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid Content-Length header", "code": "INVALID_CONTENT_LENGTH"},
        )
    if int(declared) > MAX_REQUEST_SIZE_KB * 1024:
        return JSONResponse(
            status_code=413,
            content={
                "detail": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_KB}KB.",
                "code": "REQUEST_TOO_LARGE",
            },
        )
    return None


# =============================================================================
# Exception handlers
# =============================================================================

def _error_headers(request: Request, allowed_origins: list[str]) -> dict[str, str]:
    """Handlers run outside CORSMiddleware, so CORS headers are added here."""
    headers = {
        "X-Request-ID": getattr(request.state, "request_id", None) or str(uuid.uuid4())
    }
    origin = request.headers.get("origin")
    if origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def register_exception_handlers(app: FastAPI, allowed_origins: list[str]) -> None:
    async def on_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        headers = _error_headers(request, allowed_origins)
        headers.update(exc.headers or {})
        if exc.status_code in (401, 403):
            logger.warning(
                "Refused %s %s with %s client_ip=%s",
                request.method,
                request.url.path,
                exc.status_code,
                get_client_ip(request),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": headers["X-Request-ID"]},
            headers=headers,
        )

    async def on_rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _error_headers(request, allowed_origins)
        headers["Retry-After"] = "60"
        log_security_event("rate_limited", request, {"limit": str(exc.detail)})
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Too many requests. Please wait a minute and try again.",
                "code": "RATE_LIMIT_EXCEEDED",
                "request_id": headers["X-Request-ID"],
            },
            headers=headers,
        )

    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        headers = _error_headers(request, allowed_origins)
        logger.error(
            "Unhandled %s on %s %s request_id=%s",
            type(exc).__name__,
            request.method,
            request.url.path,
            headers["X-Request-ID"],
            exc_info=exc,
        )
        content = {"detail": "An internal server error occurred.", "code": "INTERNAL_ERROR"}
        if not IS_PRODUCTION:
            content = {"detail": str(exc), "error_type": type(exc).__name__}
        content["request_id"] = headers["X-Request-ID"]
        return JSONResponse(status_code=500, content=content, headers=headers)

    app.add_exception_handler(HTTPException, on_http_exception)
    app.add_exception_handler(RateLimitExceeded, on_rate_limited)
    app.add_exception_handler(Exception, on_unhandled)


def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """Install rate limiting, request middleware and error handlers on *app*.

    Call after CORSMiddleware is added.
    """
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(PortalRequestMiddleware)
    register_exception_handlers(app, allowed_origins)

    logger.info(
        "Security configured: %s/min general, %s/min report writes, %sKB max body (%s)",
        RATE_LIMIT_PER_MINUTE,
        WRITE_RATE_LIMIT_PER_MINUTE,
        MAX_REQUEST_SIZE_KB,
        ENVIRONMENT,
    )


# =============================================================================
# Audit logging
# =============================================================================

def log_security_event(
    event_type: str,
    request: Request,
    details: Optional[dict] = None,
) -> None:
    """Log an audit event such as a failed sign-in or a reopened report."""
    event = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(details or {}),
    }
    logger.warning("SECURITY_EVENT: %s", event)

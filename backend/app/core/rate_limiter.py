"""
Rate Limiting for Graduation Booklets
=====================================
Implements rate limiting using slowapi, backed by Redis when REDIS_URL is
set and by process memory otherwise.

Special endpoints have their own limits:
- /booklets/generate: GENERATE_RATE_LIMIT (expensive PDF work)
- /booklets/{id}/download: DOWNLOAD_RATE_LIMIT
- password verification: 5/min (brute force protection)
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.exceptions import ErrorCode, user_message_for
from app.core.logging_config import logger

PASSWORD_RATE_LIMIT = "5/minute"


def get_client_identifier(request: Request) -> str:
    """
    Rate limit key.

    Priority:
    1. Editor id header (authenticated editor tools)
    2. IP address (public visitors)
    """
    editor_id = request.headers.get("X-Editor-Id")
    if editor_id:
        return f"editor:{editor_id}"
    return f"ip:{get_remote_address(request)}"


def get_storage_uri() -> str:
    """Redis when configured, in-memory otherwise"""
    return settings.REDIS_URL or "memory://"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=get_storage_uri(),
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """JSON 429 in the same envelope as every other error"""
    retry_after = "60"
    logger.warning(f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": ErrorCode.RATE_LIMITED.value,
            "message": "Too many requests. Please slow down.",
            "userMessage": user_message_for(ErrorCode.RATE_LIMITED),
            "details": {"limit": str(exc.detail)},
        },
        headers={"Retry-After": retry_after},
    )


def generate_rate_limit():
    return limiter.limit(settings.GENERATE_RATE_LIMIT)


def download_rate_limit():
    return limiter.limit(settings.DOWNLOAD_RATE_LIMIT)


def password_rate_limit():
    """Strict limit for password checks"""
    return limiter.limit(PASSWORD_RATE_LIMIT)

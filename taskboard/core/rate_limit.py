"""Shared rate limiter configuration for the application."""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from taskboard.core.config import settings
from taskboard.core.errors import error_envelope

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """
    Get the real client IP address, accounting for proxies.

    Only trusts X-Forwarded-For/X-Real-IP headers when BEHIND_PROXY=True,
    preventing header spoofing when directly exposed to the internet.
    """
    if settings.BEHIND_PROXY:
        # client, proxy1, proxy2, ...
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return get_remote_address(request)


# Per-route default for API endpoints; the application limit is shared by
# every route for one client. Auth routes add their own stricter limit.
limiter = Limiter(
    key_func=get_real_client_ip,
    default_limits=[settings.RATE_LIMIT_API],
    application_limits=[settings.RATE_LIMIT_GLOBAL],
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded for %s on %s", get_real_client_ip(request), request.url.path)
    return JSONResponse(
        status_code=429,
        content=error_envelope("Too many requests, please try again later", "RATE_LIMIT_EXCEEDED"),
    )

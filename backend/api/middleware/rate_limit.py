"""
Rate limiting for the API.

Two layers:

- slowapi ``limiter``: global per-IP default plus stricter per-endpoint
  limits through ``@limiter.limit``. Uses Redis when ``REDIS_URL`` is set
  and in-process memory otherwise.
- ``WindowedRateLimiter`` instances injected as dependencies on comment
  posting and the public API. Their stores are bounded and swept by the
  app lifespan.

Rate Limits:
- Login: 5 attempts per minute
- Registration: 3 attempts per minute
- Password Reset: 3 attempts per hour
- Checkout: 10 per minute
- AI tools: 20 per minute
- Default: 100 requests per minute
"""

import ipaddress
import logging
import re
from typing import Callable

from fastapi import HTTPException, status
from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from infrastructure.config.settings import settings
from services.rate_limiter import WindowedRateLimiter

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Private IPs in X-Forwarded-For can be spoofed to dodge limits."""
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Extract real client IP from proxy headers, falling back to remote address.

    The extracted IP is validated; private and loopback addresses taken from
    headers are ignored in favour of the connection address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can be a comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Rate limit configurations
# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "login": "5/minute",
    "register": "3/minute",
    "password_reset": "3/hour",
    "checkout": "10/minute",
    "ai": "20/minute",
    "default": "100/minute",
}

_storage_uri = settings.redis_url if settings.redis_url else "memory://"

if not settings.redis_url:
    logger.warning(
        "Rate limiter using in-memory storage, not suitable for multi-worker production"
    )
    if settings.environment == "production":
        logger.critical(
            "REDIS_URL is not set in production: global rate limits are per worker only."
        )

limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint.

    Example:
        >>> get_rate_limit("login")
        "5/minute"
        >>> get_rate_limit("unknown")
        "100/minute"
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])


def _windowed_from_settings() -> WindowedRateLimiter:
    return WindowedRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        max_keys=settings.rate_limit_max_keys,
    )


comment_rate_limiter = _windowed_from_settings()
public_api_rate_limiter = _windowed_from_settings()

WINDOWED_LIMITERS = (comment_rate_limiter, public_api_rate_limiter)


def windowed_limit(limiter_: WindowedRateLimiter) -> Callable:
    """
    Build a dependency that charges one request to the caller's IP.

    Exceeding the window raises 429 with a ``Retry-After`` header.
    """

    async def dependency(request: Request) -> None:
        key = get_client_ip(request)
        if not limiter_.hit(key):
            retry_after = limiter_.retry_after(key)
            logger.info("Windowed rate limit exceeded for %s on %s", key, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please try again later.",
                headers={"Retry-After": str(retry_after)},
            )

    return dependency


def sweep_windowed_limiters() -> int:
    """Drop expired windows from every windowed limiter."""
    return sum(limiter_.sweep() for limiter_ in WINDOWED_LIMITERS)


def reset_windowed_limiters() -> None:
    for limiter_ in WINDOWED_LIMITERS:
        limiter_.reset()

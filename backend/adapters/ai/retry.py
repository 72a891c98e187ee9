"""Retry helper shared by the AI provider adapters."""

import asyncio
import logging
import random

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = (
    "rate_limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "overloaded",
    "connection",
    "timeout",
)
_TRANSIENT_STATUS = {408, 409, 429, 500, 502, 503, 504, 529}


def is_transient(error: Exception) -> bool:
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code in _TRANSIENT_STATUS
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


async def retry_with_backoff(coro_factory, max_retries=3, base_delay=1.0):
    """Retry an async operation with exponential backoff + jitter."""
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as e:
            if not is_transient(e) or attempt == max_retries:
                raise
            delay = base_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.warning(
                "Transient API error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1, max_retries, delay, e,
            )
            await asyncio.sleep(delay)

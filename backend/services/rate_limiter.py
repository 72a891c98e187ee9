"""
Bounded, fixed-window request counter keyed by caller.

Used for per-caller throttles that sit next to the global slowapi limits
(comment posting, the public API). Memory is capped two ways:

- at most ``max_keys`` windows are kept; the least recently used key is
  evicted when a new one arrives;
- ``sweep()`` drops windows that have expired, and the app lifespan runs
  it periodically.

Usage::

    limiter = WindowedRateLimiter(max_requests=200, window_seconds=900)
    if not limiter.check(ip):
        raise HTTPException(429, ...)
    limiter.record(ip)
"""

import logging
import time
from collections import OrderedDict
from typing import Callable

logger = logging.getLogger(__name__)


class _Window:
    __slots__ = ("started_at", "count")

    def __init__(self, started_at: float) -> None:
        self.started_at = started_at
        self.count = 0


class WindowedRateLimiter:
    """In-memory limiter with ``check(key)`` / ``record(key)``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1 or window_seconds <= 0 or max_keys < 1:
            raise ValueError("max_requests, window_seconds and max_keys must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._windows: OrderedDict[str, _Window] = OrderedDict()

    def __len__(self) -> int:
        return len(self._windows)

    # ── Public API ────────────────────────────────────────────────────────────

    def check(self, key: str) -> bool:
        """Return True if *key* may make another request in its current window."""
        window = self._current(key)
        return window is None or window.count < self.max_requests

    def record(self, key: str) -> None:
        """Count one request for *key*, opening a window if none is active."""
        now = self._clock()
        window = self._current(key, now)
        if window is None:
            window = _Window(now)
            self._windows[key] = window
            self._evict_overflow()
        self._windows.move_to_end(key)
        window.count += 1

    def hit(self, key: str) -> bool:
        """``check`` then ``record`` when allowed. Returns the check result."""
        if not self.check(key):
            return False
        self.record(key)
        return True

    def retry_after(self, key: str) -> int:
        """Seconds until *key*'s window resets (0 when it has none)."""
        window = self._current(key)
        if window is None:
            return 0
        return max(0, int(window.started_at + self.window_seconds - self._clock()) + 1)

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if self._expired(window, now)]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("rate_limiter: swept %d expired windows", len(expired))
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _expired(self, window: _Window, now: float) -> bool:
        return now - window.started_at >= self.window_seconds

    def _current(self, key: str, now: float | None = None) -> _Window | None:
        window = self._windows.get(key)
        if window is None:
            return None
        if self._expired(window, self._clock() if now is None else now):
            del self._windows[key]
            return None
        return window

    def _evict_overflow(self) -> None:
        while len(self._windows) > self.max_keys:
            evicted, _ = self._windows.popitem(last=False)
            logger.debug("rate_limiter: evicted least recently used key %s", evicted)

"""HTTP security headers and the in-memory login rate limiter."""

from __future__ import annotations

import threading
import time

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "connect-src 'self' https://api.strava.com https://www.googleapis.com; "
        "frame-ancestors 'none';"
    ),
}


def get_security_headers() -> dict[str, str]:
    return dict(SECURITY_HEADERS)


class RateLimiter:
    """Fixed-window counter keyed by client identifier.

    Process-local: each worker keeps its own counts.
    """

    def __init__(self, max_attempts: int, window_seconds: int):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._hits: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float | None = None) -> bool:
        """Record an attempt. Returns False when the key is over its limit."""
        now = time.monotonic() if now is None else now
        with self._lock:
            # Drop expired windows so the map does not grow unbounded
            for stale in [k for k, (_, start) in self._hits.items() if now - start >= self.window_seconds]:
                del self._hits[stale]
            count, window_start = self._hits.get(key, (0, now))
            count += 1
            self._hits[key] = (count, window_start)
            return count <= self.max_attempts

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

"""In-memory fixed-window rate limiting."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check.

    Attributes
    ----------
    allowed : bool
        Whether the request may proceed.
    remaining : int
        Requests left in the current window.
    reset_in_ms : float
        Milliseconds until the window for this key resets.
    """

    allowed: bool
    remaining: int
    reset_in_ms: float

    @property
    def retry_after_seconds(self) -> int:
        """Value for a ``Retry-After`` header, rounded up."""
        return max(int(-(-self.reset_in_ms // 1000)), 0)


@dataclass
class _Window:
    count: int
    reset_at_ms: float


class RateLimiter:
    """Count requests per key inside fixed time windows.

    State lives in process memory, so limits apply per worker process.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or (lambda: time.monotonic() * 1000.0)
        self._windows: Dict[str, _Window] = {}
        self._next_sweep_ms: Optional[float] = None
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_ms: float) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it is allowed.

        Finished windows of other keys are dropped at most once per
        ``window_ms``, so the table only holds keys seen recently.
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        now = self._clock()
        with self._lock:
            if self._next_sweep_ms is None or now >= self._next_sweep_ms:
                self._drop_expired(now)
                self._next_sweep_ms = now + window_ms

            window = self._windows.get(key)
            if window is None or now >= window.reset_at_ms:
                window = _Window(count=0, reset_at_ms=now + window_ms)
                self._windows[key] = window

            reset_in = window.reset_at_ms - now
            if window.count >= limit:
                logger.warning(f"Rate limit exceeded for key '{key}'")
                return RateLimitDecision(allowed=False, remaining=0, reset_in_ms=reset_in)

            window.count += 1
            return RateLimitDecision(
                allowed=True, remaining=limit - window.count, reset_in_ms=reset_in
            )

    def purge_expired(self) -> int:
        """Drop finished windows and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at_ms]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate limit window(s)")
        return len(expired)


__all__ = ["RateLimitDecision", "RateLimiter"]

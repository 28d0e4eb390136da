"""
Rate limiting for the TimeLock HTTP service.

Sliding window limiter keyed by caller, one instance per endpoint group.
"""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


@dataclass
class RateLimitResult:
    """Outcome of one rate limit check."""
    allowed: bool
    remaining: int
    retry_after: Optional[float] = None


class RateLimiter:
    """
    Sliding window rate limiter.

    Args:
        rpm: Maximum requests per window for one key
        window_seconds: Window size in seconds (default 60)
        clock: Time source, injectable for tests
    """

    def __init__(self, rpm: int, window_seconds: int = 60, clock: Callable[[], float] = time.time):
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.RLock()

    @property
    def limit(self) -> int:
        return self._limit

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitResult:
        """Record a hit for key unless the window is full."""
        now = self._clock()
        window_start = now - self._window

        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= self._limit:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    retry_after=max(0.0, hits[0] + self._window - now)
                )

            hits.append(now)
            return RateLimitResult(allowed=True, remaining=self._limit - len(hits))

    def reset(self, key: Optional[str] = None) -> None:
        """Forget hits for one key, or for every key."""
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()

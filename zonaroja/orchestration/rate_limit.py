"""Per-identity request limiting for expensive operations."""

from __future__ import annotations

from collections import deque
from threading import Lock
from time import time
from typing import Callable, Dict, Optional, Protocol


class RateLimiter(Protocol):
    def check(self, key: str) -> Optional[int]:
        """Record one request for *key*; return retry-after seconds when blocked."""
        ...


class SlidingWindowRateLimiter:
    """In-memory rolling-window limiter; one deque of timestamps per key."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time,
    ) -> None:
        self._max_requests = max(0, max_requests)
        self._window_seconds = max(1, window_seconds)
        self._clock = clock
        self._buckets: Dict[str, deque[float]] = {}
        self._lock = Lock()

    def check(self, key: str) -> Optional[int]:
        if self._max_requests <= 0:
            return None

        now = self._clock()
        cutoff = now - self._window_seconds

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = deque()
                self._buckets[key] = bucket

            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self._max_requests:
                retry_after = int(bucket[0] + self._window_seconds - now) + 1
                return max(1, retry_after)

            bucket.append(now)
            return None

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)


class NoopRateLimiter:
    """Limiter used when a quota is disabled."""

    def check(self, key: str) -> Optional[int]:
        return None

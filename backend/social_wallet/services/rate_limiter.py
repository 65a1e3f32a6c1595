"""In-memory sliding-window rate limiting for logins and client API calls."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict


class InMemoryRateLimiter:
    """
    Per-key sliding window counter for single-node deployments.

    Keys are free-form, e.g. ``login:203.0.113.7`` or ``client:12``.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    def _window(self, key: str, window_seconds: int) -> Deque[float]:
        cutoff = self._clock() - window_seconds
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        with self._lock:
            hits = self._window(key, window_seconds)
            if len(hits) >= limit:
                return False
            hits.append(self._clock())
            return True

    def remaining(self, key: str, limit: int, window_seconds: int) -> int:
        with self._lock:
            return max(0, limit - len(self._window(key, window_seconds)))

    def reset(self, key: str = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


rate_limiter = InMemoryRateLimiter()

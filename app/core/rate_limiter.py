"""
app/core/rate_limiter.py — Per-client rate limiting
SlidingWindowRateLimiter guards request creation (10/minute per client).
The slowapi limiter guards the AI rewrite endpoint, keyed the same way.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from limits import parse
from slowapi import Limiter
from starlette.requests import Request

from app.config import get_settings

UNKNOWN_CLIENT = "unknown"


def client_key(request: Request) -> str:
    """
    Identify the caller: first X-Forwarded-For hop, then X-Real-IP,
    then the transport peer. Unidentified callers share one bucket.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


# Shared slowapi instance — imported by main.py and routers
limiter = Limiter(key_func=client_key)


def rewrite_rate_limit() -> str:
    """slowapi limit for /api/rewrite; each call costs provider quota."""
    return get_settings().rewrite_rate_limit


class SlidingWindowRateLimiter:
    """
    Sliding-window counter keyed by client identifier.

    Only accepted attempts are recorded: a rejected call leaves the window
    untouched, so a slot freed by the oldest accepted call aging out is
    immediately available again.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_rate(
        cls,
        rate: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> "SlidingWindowRateLimiter":
        """Build from a rate string such as "10/minute" or "100 per hour"."""
        item = parse(rate)
        return cls(max_requests=item.amount, window_seconds=item.get_expiry(), clock=clock)

    def _prune(self, window: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def allow(self, key: str) -> bool:
        """Record and accept the attempt if the client has a free slot."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = deque()
            self._prune(window, now)
            if len(window) >= self.max_requests:
                return False
            window.append(now)
            return True

    def sweep(self) -> int:
        """Drop clients with no timestamps inside the window. Returns keys removed."""
        with self._lock:
            now = self._clock()
            stale = []
            for key, window in self._windows.items():
                self._prune(window, now)
                if not window:
                    stale.append(key)
            for key in stale:
                del self._windows[key]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

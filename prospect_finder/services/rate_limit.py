"""In-memory fixed-window rate limiter."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from prospect_finder.config import settings

RateGate = Callable[[str], Awaitable[bool]]


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._hits: dict[str, _Window] = {}

    def _purge(self, now: float) -> None:
        expired = [key for key, window in self._hits.items() if now > window.reset_at]
        for key in expired:
            del self._hits[key]

    def is_limited(
        self,
        key: str,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        identifier: Optional[str] = None,
    ) -> bool:
        """Count one hit for *key* (scoped to *identifier*) and say whether it is over the limit."""
        max_requests = max_requests or settings.rate_limit_max_requests
        window_seconds = window_seconds or settings.rate_limit_window_seconds
        effective_key = f"{key}:{identifier}" if identifier else key
        now = self._clock()
        self._purge(now)

        window = self._hits.get(effective_key)
        if window is None:
            self._hits[effective_key] = _Window(count=1, reset_at=now + window_seconds)
            return False
        window.count += 1
        return window.count > max_requests

    def gate(
        self,
        key: str,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ) -> RateGate:
        """Async "may this source proceed?" callable, scoped per source name."""

        async def proceed(source: str) -> bool:
            return not self.is_limited(key, max_requests, window_seconds, identifier=source)

        return proceed


def client_identifier(headers, peer: Optional[str] = None) -> str:
    """Client IP from proxy headers, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or peer or "unknown"


rate_limiter = RateLimiter()

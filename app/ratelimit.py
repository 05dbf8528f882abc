"""Per-client request rate limiting.

Two fixed-window limiters guard the API: a global one applied to every
request and a stricter one stacked on ``POST /shorten``. Counters live in
process memory and are keyed by client IP.

Flow Diagram — rate_limit_middleware()
======================================
::
    ┌─────────────┐
    │  Request     │
    └──────┬──────┘
           ▼
    ┌─────────────┐  exempt path  ┌──────────────┐
    │ /health or  │ ────────────▶ │ call_next    │
    │ /metrics?   │               └──────────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ global hit  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ POST        │── YES ──▶ shorten hit
    │ /shorten?   │
    └──────┬──────┘
    ALLOWED?│
    ┌─────┴─────┐
    │ YES        │ NO
    ▼            ▼
┌─────────┐  ┌──────────────────────┐
│ handler │  │ 429 + Retry-After    │
│ + quota │  │ + X-RateLimit-*      │
│ headers │  └──────────────────────┘
└─────────┘

Key Behaviours
===============
- A request rejected by the global limiter is not counted by the
  ``/shorten`` limiter.
- Limit checks never await, so one event loop needs no lock around them.
- Expired windows are swept at most once per window length.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "get_client_ip",
    "rate_limit_headers",
    "too_many_requests",
]

RATE_LIMITED_REQUESTS_TOTAL = Counter(
    "url_shortener_rate_limited_requests_total",
    "Requests rejected with 429",
    ["limiter"],
)

TOO_MANY_REQUESTS_DETAIL = "Too many requests, please try again later."


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float


class FixedWindowRateLimiter:
    """Allow at most ``limit`` hits per key in each ``window_seconds`` window.

    Example:
        >>> limiter = FixedWindowRateLimiter("shorten", limit=10, window_seconds=60)
        >>> limiter.hit("203.0.113.7").allowed
        True
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        self._sweep(now)

        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
        reset_after = self.window_seconds - (now - started)

        if count >= self.limit:
            RATE_LIMITED_REQUESTS_TOTAL.labels(limiter=self.name).inc()
            return RateLimitResult(False, self.limit, 0, reset_after)

        count += 1
        self._windows[key] = (started, count)
        return RateLimitResult(True, self.limit, self.limit - count, reset_after)

    def reset(self) -> None:
        self._windows.clear()

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._windows = {
            key: window for key, window in self._windows.items() if now - window[0] < self.window_seconds
        }
        self._last_sweep = now


def get_client_ip(request: Request, trust_forwarded: bool = False) -> str:
    # Only the first hop of X-Forwarded-For, and only behind a trusted proxy
    if trust_forwarded:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            return xff.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }


def too_many_requests(result: RateLimitResult) -> JSONResponse:
    headers = rate_limit_headers(result)
    headers["Retry-After"] = str(max(1, math.ceil(result.reset_after)))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers=headers,
        content={"detail": TOO_MANY_REQUESTS_DETAIL},
    )

"""
Fixed-window rate limiting over Django's cache.

Policies are declared in settings.RATE_LIMITS:

    RATE_LIMITS = {
        "webhook": {"max_requests": 100, "window_seconds": 60},
        ...
    }

Usage:
    from core.rate_limit import CacheRateLimiter, get_policy

    limiter = CacheRateLimiter()
    result = limiter.check(f"webhook:{ip}", get_policy("webhook"))
    if not result.allowed:
        return JsonResponse({"error": "Too many requests"}, status=429)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import cache as default_cache
from django.core.exceptions import ImproperlyConfigured

if TYPE_CHECKING:
    from core.protocols import CacheBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Requests left in the current window
        reset_at: Unix timestamp (seconds) when the window resets
        limit: The policy's max_requests
    """

    allowed: bool
    remaining: int
    reset_at: int
    limit: int

    @property
    def retry_after(self) -> int:
        return max(0, self.reset_at - int(time.time()))

    def headers(self) -> dict[str, str]:
        """Standard X-RateLimit-* headers (plus Retry-After when blocked)."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


def get_policy(name: str) -> RateLimitPolicy:
    """
    Look up a named policy in settings.RATE_LIMITS.

    Raises:
        ImproperlyConfigured: If no policy with that name is configured
    """
    try:
        conf = settings.RATE_LIMITS[name]
    except KeyError as e:
        raise ImproperlyConfigured(f"No rate limit policy named {name!r}") from e
    return RateLimitPolicy(
        max_requests=int(conf["max_requests"]),
        window_seconds=int(conf["window_seconds"]),
    )


class CacheRateLimiter:
    """
    Counts requests per identifier in fixed windows.

    The counter key includes the window start, so each window begins at
    zero and expires on its own. add() seeds the counter atomically and
    incr() bumps it, which is safe on Redis and on the local-memory cache.
    """

    key_prefix = "rate_limit"

    def __init__(self, cache: CacheBackend | None = None, clock=time.time):
        self.cache = cache or default_cache
        self.clock = clock

    def check(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        now = int(self.clock())
        window_start = now - (now % policy.window_seconds)
        reset_at = window_start + policy.window_seconds
        key = f"{self.key_prefix}:{identifier}:{window_start}"

        self.cache.add(key, 0, timeout=policy.window_seconds)
        try:
            count = self.cache.incr(key)
        except ValueError:
            # Key expired between add() and incr()
            self.cache.set(key, 1, timeout=policy.window_seconds)
            count = 1

        allowed = count <= policy.max_requests
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "security_event": "security.rate_limit_exceeded",
                    "identifier": identifier,
                    "limit": policy.max_requests,
                    "window_seconds": policy.window_seconds,
                },
            )

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, policy.max_requests - count),
            reset_at=reset_at,
            limit=policy.max_requests,
        )

"""
Protocol definitions for generic infrastructure services.

Protocols define contracts that collaborators must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy substitution in tests

Available Protocols:
    CacheBackend: Cache operations used by the rate limiter
    RateLimiter: Request throttling interface

Usage:
    from core.protocols import RateLimiter

    def ingest(request, limiter: RateLimiter):
        result = limiter.check(f"webhook:{ip}", policy)
        if not result.allowed:
            ...

Note:
    Domain-specific protocols (provider clients, wallet relays) live in the
    marketplace app next to their implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any

    from core.rate_limit import RateLimitPolicy, RateLimitResult


@runtime_checkable
class CacheBackend(Protocol):
    """
    Subset of Django's cache interface needed for counters.

    Compatible with django.core.cache.cache (locmem or django-redis).
    """

    def add(self, key: str, value: Any, timeout: int | None = None) -> bool:
        """Set key only if it does not exist. Returns True if it was set."""
        ...

    def incr(self, key: str, delta: int = 1) -> int:
        """
        Increment a counter.

        Raises:
            ValueError: If the key does not exist
        """
        ...

    def set(self, key: str, value: Any, timeout: int | None = None) -> None: ...

    def get(self, key: str, default: Any = None) -> Any: ...


@runtime_checkable
class RateLimiter(Protocol):
    """
    Protocol for rate limiters.

    Example:
        class AllowAll:
            def check(self, identifier, policy):
                return RateLimitResult(True, policy.max_requests, 0, policy.max_requests)
    """

    def check(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """
        Record one request for identifier and report whether it is allowed.

        Args:
            identifier: Throttle key, e.g. "webhook:203.0.113.7"
            policy: Limits to apply

        Returns:
            RateLimitResult with the decision and header values
        """
        ...

"""
DRF throttles backed by core.rate_limit policies.

Usage:
    class RetryView(APIView):
        throttle_classes = [ApiThrottle, PaymentThrottle]
"""

from __future__ import annotations

from rest_framework.throttling import BaseThrottle

from core.helpers import get_client_ip
from core.rate_limit import CacheRateLimiter, get_policy


class PolicyThrottle(BaseThrottle):
    """
    Throttle requests with the named RATE_LIMITS policy.

    Authenticated requests are counted per user, anonymous ones per IP.
    """

    policy_name: str = ""
    limiter_class = CacheRateLimiter

    def __init__(self):
        self.result = None

    def get_ident_key(self, request) -> str:
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return f"user:{user.pk}"
        return f"ip:{get_client_ip(request)}"

    def allow_request(self, request, view) -> bool:
        identifier = f"{self.policy_name}:{self.get_ident_key(request)}"
        self.result = self.limiter_class().check(identifier, get_policy(self.policy_name))
        return self.result.allowed

    def wait(self) -> float | None:
        if self.result is None:
            return None
        return self.result.retry_after


class ApiThrottle(PolicyThrottle):
    policy_name = "api"


class PaymentThrottle(PolicyThrottle):
    policy_name = "payment"


class GreenfieldThrottle(PolicyThrottle):
    policy_name = "greenfield"

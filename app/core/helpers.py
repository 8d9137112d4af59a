"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Temporary password generation (cryptographic)
- HTTP request helpers (client IP extraction)

Usage:
    from core.helpers import generate_password, get_client_ip

    password = generate_password(16)
    ip = get_client_ip(request)
"""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"


def generate_password(length: int = 16) -> str:
    """
    Generate a random password from letters, digits and symbols.

    Used for the temporary credentials handed to a shop owner after
    their account is provisioned on a provider.
    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For (first hop), then X-Real-IP, then REMOTE_ADDR.

    Returns:
        Client IP address string, or "unknown" when none is available
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # Take the first IP in the chain (original client)
        return x_forwarded_for.split(",")[0].strip()

    x_real_ip = request.META.get("HTTP_X_REAL_IP")
    if x_real_ip:
        return x_real_ip.strip()

    return request.META.get("REMOTE_ADDR") or "unknown"

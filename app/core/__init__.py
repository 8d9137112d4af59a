"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps. No marketplace logic
lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - NotFoundError, ConflictError, ExternalServiceError, DecryptionError

Secret store (import from core.encryption):
    - SecretStore: Fernet encryption, HMAC-SHA256, constant-time compare
    - get_secret_store: SecretStore built from settings

Rate limiting (import from core.rate_limit):
    - CacheRateLimiter, RateLimitPolicy, RateLimitResult, get_policy

Protocols (import from core.protocols):
    - CacheBackend, RateLimiter

Helpers (import from core.helpers):
    - generate_password, get_client_ip

Note:
    Models, the secret store and the rate limiter touch Django settings or
    the app registry, so they are NOT imported here. Import them directly
    from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    DecryptionError,
    ExternalServiceError,
    NotFoundError,
)

# Protocols (no Django dependencies)
from .protocols import CacheBackend, RateLimiter

# Helpers (no Django model dependencies)
from .helpers import generate_password, get_client_ip

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
    "DecryptionError",
    # Protocols
    "CacheBackend",
    "RateLimiter",
    # Helpers
    "generate_password",
    "get_client_ip",
]

"""
Base exception classes for application-wide error handling.

Every domain error in the project derives from BaseApplicationError so that
views can turn any of them into a consistent JSON body with a machine-readable
error code and an HTTP status.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── NotFoundError - Resource absent or not owned by the caller (404)
    ├── ConflictError - State conflicts, concurrent modifications (409)
    ├── ExternalServiceError - Upstream service failures (502)
    └── DecryptionError - Unreadable encrypted values (500)

Usage:
    from core.exceptions import NotFoundError

    shop = Shop.objects.filter(id=shop_id, owner=user).first()
    if shop is None:
        raise NotFoundError(
            "Shop not found or access denied",
            error_code="SHOP_NOT_FOUND",
            details={"shop_id": str(shop_id)},
        )

    # In a view
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, upstream status, etc.)
        http_status: Status code views should answer with
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Connection not found",
                "error_code": "CONNECTION_NOT_FOUND",
                "details": {"connection_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Ownership failures are reported the same way so callers cannot probe
    for resources that belong to someone else.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Concurrent modification conflicts (optimistic locking)
    - Invalid state transitions

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Provider management API failures
    - Lightning address / invoice endpoint failures
    - Network timeouts

    Note:
        Log the original error for debugging. The message is persisted
        into diagnostic fields, so keep it free of credentials.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


class DecryptionError(BaseApplicationError):
    """
    Raised when an encrypted value cannot be decrypted.

    Either the stored blob was tampered with or the master key changed
    since it was written. The plaintext is never recoverable in that case.
    """

    default_error_code: str = "DECRYPTION_FAILED"
    http_status: int = 500


__all__ = [
    "BaseApplicationError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
    "DecryptionError",
]

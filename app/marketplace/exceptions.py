"""
Marketplace-specific exceptions.

Exception Hierarchy:
    MarketplaceError (base for the marketplace domain)
    ├── ConnectionNotFoundError - Connection absent or not owned (404)
    ├── ConfigurationError - Provider/shop/connection missing required config
    ├── UpstreamError - Outbound call failed (is_retryable)
    │   ├── GreenfieldAPIError - BTCPay Greenfield API failure
    │   ├── InvoiceError - Lightning address / invoice resolution failure
    │   └── WalletRelayError - Wallet relay refused or failed the payment
    ├── RetryLimitExceededError - Manual retry budget exhausted
    ├── ConnectionNotRetryableError - Retry requested outside FAILED/PENDING_SETUP
    └── SignatureError - Webhook signature missing or invalid

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from marketplace.exceptions import GreenfieldAPIError

    try:
        client.create_store(name=shop.name)
    except GreenfieldAPIError as e:
        if e.status_code == 401:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
)

if TYPE_CHECKING:
    from typing import Any


class MarketplaceError(BaseApplicationError):
    """Base exception for marketplace operations."""

    default_error_code: str = "MARKETPLACE_ERROR"


class ConnectionNotFoundError(MarketplaceError, NotFoundError):
    """
    Raised when a connection does not exist or belongs to someone else.

    Example:
        raise ConnectionNotFoundError(
            "Connection not found",
            details={"connection_id": str(connection_id)},
        )
    """

    default_error_code: str = "CONNECTION_NOT_FOUND"
    http_status: int = 404


class ConfigurationError(MarketplaceError):
    """
    Raised when a provider, shop or connection lacks configuration needed
    for an operation (host URL, API key, lightning address, amount).

    Not retryable: the same request fails until someone edits the record.
    """

    default_error_code: str = "CONFIGURATION_ERROR"
    http_status: int = 500


class UpstreamError(MarketplaceError, ExternalServiceError):
    """
    Base for failures of outbound calls.

    The message may be persisted to Connection.setup_error, so it must
    never contain credentials.
    """

    default_error_code: str = "UPSTREAM_ERROR"
    http_status: int = 500
    is_retryable: bool = True


class GreenfieldAPIError(UpstreamError):
    """
    BTCPay Greenfield API call failed.

    Attributes:
        status_code: HTTP status returned by the server, None for transport errors
        response_text: Raw response body, None for transport errors
    """

    default_error_code: str = "GREENFIELD_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.response_text = response_text


class InvoiceError(UpstreamError):
    """Lightning address could not be resolved to an invoice."""

    default_error_code: str = "INVOICE_ERROR"


class WalletRelayError(UpstreamError):
    """Wallet relay rejected or failed to settle the invoice."""

    default_error_code: str = "WALLET_RELAY_ERROR"


class RetryLimitExceededError(MarketplaceError):
    """Raised when a connection has used all of its manual retries."""

    default_error_code: str = "RETRY_LIMIT_EXCEEDED"


class ConnectionNotRetryableError(MarketplaceError):
    """Raised when a retry is requested for a connection that is not failed."""

    default_error_code: str = "CONNECTION_NOT_RETRYABLE"


class SignatureError(MarketplaceError):
    """Webhook signature header missing, malformed or not matching."""

    default_error_code: str = "INVALID_SIGNATURE"
    http_status: int = 401


class StaleRecordError(ConflictError):
    """
    Optimistic locking conflict.

    Raised by check_version() when the row changed between read and claim.
    The caller should reload and decide again rather than blindly retry.
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a requested FSM transition is not allowed from the
    connection's current status.

    Example:
        raise InvalidStateTransitionError(
            "Cannot disconnect connection in PENDING state",
            details={"current_state": "PENDING", "target_state": "DISCONNECTED"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "MarketplaceError",
    "ConnectionNotFoundError",
    "ConfigurationError",
    "UpstreamError",
    "GreenfieldAPIError",
    "InvoiceError",
    "WalletRelayError",
    "RetryLimitExceededError",
    "ConnectionNotRetryableError",
    "SignatureError",
    "StaleRecordError",
    "InvalidStateTransitionError",
]

"""
Abstract base strategy for connection setup.

Each strategy handles one combination of connection type and provider
kind. The ConnectionLifecycleManager looks the strategy up in
STRATEGIES and delegates; strategies call back into the manager for every
state change so transitions, feature flags and audit rows stay in one
place.

Usage:
    class MyStrategy(ConnectionStrategy):
        def open(self, manager, connection, context):
            manager.activate(connection)
            return StrategyOutcome()

        def retry(self, manager, connection):
            return manager.unretryable(connection)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketplace.models import Connection
    from marketplace.services.connection_lifecycle import ConnectionLifecycleManager
    from marketplace.services.payment_initiator import PaymentResult


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class OpenContext:
    """
    Request data a strategy needs when a connection is first opened.

    Attributes:
        nwc_connection_string: Wallet secret for paid subscriptions
    """

    nwc_connection_string: str | None = None


@dataclass
class ProvisioningCredentials:
    """Account created on the provider, returned once to the shop owner."""

    store_id: str
    user_id: str
    username: str
    temp_password: str

    def to_dict(self) -> dict[str, str]:
        return {
            "store_id": self.store_id,
            "user_id": self.user_id,
            "username": self.username,
            "temp_password": self.temp_password,
        }


@dataclass
class ProvisioningOutcome:
    """
    Result of a provisioning run.

    Attributes:
        success: Account and store were created
        attempts: Attempts used by this run (never persisted)
        credentials: Set on success
        error: Last failure message
        skipped: Provisioning disabled by feature flag
    """

    success: bool
    attempts: int = 0
    credentials: ProvisioningCredentials | None = None
    error: str | None = None
    skipped: bool = False


@dataclass
class StrategyOutcome:
    """What a strategy did for one open or retry call."""

    payment: PaymentResult | None = None
    provisioning: ProvisioningOutcome | None = None
    error: str | None = None

    @property
    def credentials(self) -> ProvisioningCredentials | None:
        if self.provisioning is None:
            return None
        return self.provisioning.credentials


# =============================================================================
# Abstract Strategy
# =============================================================================


class ConnectionStrategy(ABC):
    """
    Abstract base class for connection setup strategies.

    - FreeListingStrategy: activate immediately
    - FreeListingWithProvisioningStrategy: activate, then provision
    - PaidSubscriptionStrategy: pay, payment result decides the status
    - PaidSubscriptionWithProvisioningStrategy: pay, then provision

    Payment always runs before provisioning so no remote account is
    created for a subscription that was not paid.
    """

    connection_type: str
    requires_provisioning: bool = False

    @abstractmethod
    def open(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
        context: OpenContext,
    ) -> StrategyOutcome:
        """Drive a freshly created PENDING connection to its first status."""

    @abstractmethod
    def retry(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
    ) -> StrategyOutcome:
        """
        Run exactly one recovery step for a connection the manager has
        already claimed (status PENDING, retry_count incremented).
        """

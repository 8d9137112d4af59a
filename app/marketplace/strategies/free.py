"""
Free listing strategies.

A free listing needs no payment, so it is live as soon as it is created.
Providers that host stores for their shops additionally provision an
account, and a provisioning failure downgrades the listing to
PENDING_SETUP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from marketplace.state_machines import ConnectionType
from marketplace.strategies.base import ConnectionStrategy, StrategyOutcome

if TYPE_CHECKING:
    from marketplace.models import Connection
    from marketplace.services.connection_lifecycle import ConnectionLifecycleManager
    from marketplace.strategies.base import OpenContext


class FreeListingStrategy(ConnectionStrategy):
    connection_type = ConnectionType.FREE_LISTING
    requires_provisioning = False

    def open(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
        context: OpenContext,
    ) -> StrategyOutcome:
        manager.activate(connection)
        return StrategyOutcome()

    def retry(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
    ) -> StrategyOutcome:
        # Nothing can fail for a plain listing, so there is nothing to redo
        return manager.unretryable(connection)


class FreeListingWithProvisioningStrategy(FreeListingStrategy):
    requires_provisioning = True

    def open(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
        context: OpenContext,
    ) -> StrategyOutcome:
        outcome = super().open(manager, connection, context)
        outcome.provisioning = manager.provision(connection)
        outcome.error = outcome.provisioning.error
        return outcome

    def retry(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
    ) -> StrategyOutcome:
        provisioning = manager.retry_provisioning(connection)
        return StrategyOutcome(provisioning=provisioning, error=provisioning.error)

"""
Paid subscription strategies.

The first subscription payment decides the connection status. When the
provider also hosts the shop's store, provisioning runs only after the
payment succeeded, and its failure overwrites ACTIVE with PENDING_SETUP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from marketplace.state_machines import ConnectionType
from marketplace.strategies.base import ConnectionStrategy, StrategyOutcome

if TYPE_CHECKING:
    from marketplace.models import Connection
    from marketplace.services.connection_lifecycle import ConnectionLifecycleManager
    from marketplace.strategies.base import OpenContext


class PaidSubscriptionStrategy(ConnectionStrategy):
    connection_type = ConnectionType.PAID_SUBSCRIPTION
    requires_provisioning = False

    def open(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
        context: OpenContext,
    ) -> StrategyOutcome:
        payment = manager.pay(connection, context.nwc_connection_string)
        return StrategyOutcome(payment=payment, error=payment.error)

    def retry(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
    ) -> StrategyOutcome:
        if not connection.encrypted_nwc_connection_string:
            return manager.unretryable(connection)
        payment = manager.retry_payment(connection)
        return StrategyOutcome(payment=payment, error=payment.error)


class PaidSubscriptionWithProvisioningStrategy(PaidSubscriptionStrategy):
    requires_provisioning = True

    def open(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
        context: OpenContext,
    ) -> StrategyOutcome:
        outcome = super().open(manager, connection, context)
        if not outcome.payment.success:
            return outcome

        outcome.provisioning = manager.provision(connection)
        outcome.error = outcome.provisioning.error
        return outcome

    def retry(
        self,
        manager: ConnectionLifecycleManager,
        connection: Connection,
    ) -> StrategyOutcome:
        """
        Redo whichever step has not completed yet.

        A connection that was never paid retries the payment; a paid one
        retries provisioning. Never both in one call, so a payment that
        settles here leaves the connection in PENDING_SETUP for the next
        retry to provision.
        """
        if connection.nwc_payment_id is None:
            outcome = super().retry(manager, connection)
            if outcome.payment is not None and outcome.payment.success:
                outcome.error = manager.defer_provisioning(connection)
            return outcome

        provisioning = manager.retry_provisioning(connection)
        return StrategyOutcome(provisioning=provisioning, error=provisioning.error)

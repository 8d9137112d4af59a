"""
Pytest fixtures for connection strategy tests.

Strategies only call back into the lifecycle manager, so they are tested
against a recording manager double and unsaved connections.
"""

from dataclasses import dataclass, field

import pytest

from marketplace.models import Connection
from marketplace.services.payment_initiator import PaymentResult
from marketplace.state_machines import ConnectionType
from marketplace.strategies import ProvisioningCredentials, ProvisioningOutcome, StrategyOutcome


@dataclass
class RecordingManager:
    """
    Lifecycle manager double.

    Records each building block a strategy calls, in order, and answers
    with the configured payment, provisioning and deferral outcomes.
    """

    payment: PaymentResult = field(
        default_factory=lambda: PaymentResult(success=True, payment_id="nwc_1", amount=1000)
    )
    provisioning: ProvisioningOutcome = field(
        default_factory=lambda: ProvisioningOutcome(
            success=True,
            attempts=1,
            credentials=ProvisioningCredentials("store_1", "user_1", "shop_1a2b", "pw"),
        )
    )
    deferral: str | None = "Payment settled; store provisioning pending"
    calls: list[tuple] = field(default_factory=list)

    def activate(self, connection):
        self.calls.append(("activate",))

    def pay(self, connection, nwc_connection_string):
        self.calls.append(("pay", nwc_connection_string))
        return self.payment

    def retry_payment(self, connection):
        self.calls.append(("retry_payment",))
        return self.payment

    def provision(self, connection):
        self.calls.append(("provision",))
        return self.provisioning

    def retry_provisioning(self, connection):
        self.calls.append(("retry_provisioning",))
        return self.provisioning

    def defer_provisioning(self, connection):
        self.calls.append(("defer_provisioning",))
        return self.deferral

    def unretryable(self, connection):
        self.calls.append(("unretryable",))
        return StrategyOutcome(error="Unable to determine retry method for this connection")

    def names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def recording_manager():
    return RecordingManager()


@pytest.fixture
def free_connection():
    """Unsaved free listing."""
    return Connection(connection_type=ConnectionType.FREE_LISTING)


@pytest.fixture
def paid_connection():
    """Unsaved paid subscription with a stored wallet secret."""
    return Connection(
        connection_type=ConnectionType.PAID_SUBSCRIPTION,
        subscription_amount=1000,
        encrypted_nwc_connection_string="gAAAAA-encrypted",
    )

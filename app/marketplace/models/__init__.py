"""
Marketplace domain models.

- Shop: Merchant listing owned by a user
- InfrastructureProvider: Infrastructure shops connect to
- Connection: Shop ↔ provider relationship with its FSM lifecycle
- PaymentHistory: Append-only payment and audit ledger per connection
"""

from marketplace.models.connection import MAX_CONNECTION_RETRIES, Connection
from marketplace.models.payment_history import ImmutableRecordError, PaymentHistory
from marketplace.models.provider import InfrastructureProvider
from marketplace.models.shop import Shop

__all__ = [
    "MAX_CONNECTION_RETRIES",
    "Connection",
    "ImmutableRecordError",
    "InfrastructureProvider",
    "PaymentHistory",
    "Shop",
]

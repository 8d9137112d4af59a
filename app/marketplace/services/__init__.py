"""
Marketplace services.

- PaymentInitiator: pays subscriptions over NWC
- ConnectionLifecycleManager: creates, provisions, retries and
  disconnects connections
"""

from marketplace.services.payment_initiator import PaymentInitiator, PaymentResult
from marketplace.services.connection_lifecycle import (
    ConnectionLifecycleManager,
    RetryOutcome,
    ShopCreationResult,
    ShopParams,
)

__all__ = [
    "ConnectionLifecycleManager",
    "PaymentInitiator",
    "PaymentResult",
    "RetryOutcome",
    "ShopCreationResult",
    "ShopParams",
]

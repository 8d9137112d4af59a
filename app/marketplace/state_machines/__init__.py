"""
State machine enums for marketplace models.
"""

from marketplace.state_machines.states import (
    RETRYABLE_STATUSES,
    ConnectionStatus,
    ConnectionType,
    PaymentHistoryStatus,
    PaymentMethod,
    ServiceType,
    SubscriptionInterval,
)

__all__ = [
    "RETRYABLE_STATUSES",
    "ConnectionStatus",
    "ConnectionType",
    "PaymentHistoryStatus",
    "PaymentMethod",
    "ServiceType",
    "SubscriptionInterval",
]

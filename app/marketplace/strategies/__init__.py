"""
Connection setup strategies.

Strategies are keyed by (connection_type, provider requires provisioning).
Adding a new combination means adding a strategy and a table entry; the
lifecycle manager does not branch on types.

Usage:
    from marketplace.strategies import get_strategy

    strategy = get_strategy(connection.connection_type, provider.requires_provisioning)
    outcome = strategy.open(manager, connection, OpenContext(nwc_connection_string=nwc))
"""

from marketplace.state_machines import ConnectionType
from marketplace.strategies.base import (
    ConnectionStrategy,
    OpenContext,
    ProvisioningCredentials,
    ProvisioningOutcome,
    StrategyOutcome,
)
from marketplace.strategies.free import (
    FreeListingStrategy,
    FreeListingWithProvisioningStrategy,
)
from marketplace.strategies.paid import (
    PaidSubscriptionStrategy,
    PaidSubscriptionWithProvisioningStrategy,
)

STRATEGIES: dict[tuple[str, bool], type[ConnectionStrategy]] = {
    (ConnectionType.FREE_LISTING, False): FreeListingStrategy,
    (ConnectionType.FREE_LISTING, True): FreeListingWithProvisioningStrategy,
    (ConnectionType.PAID_SUBSCRIPTION, False): PaidSubscriptionStrategy,
    (ConnectionType.PAID_SUBSCRIPTION, True): PaidSubscriptionWithProvisioningStrategy,
}


def get_strategy(connection_type: str, requires_provisioning: bool) -> ConnectionStrategy:
    """
    Get a strategy instance for a connection.

    Raises:
        ValueError: If the combination is not registered
    """
    strategy_class = STRATEGIES.get((connection_type, bool(requires_provisioning)))
    if not strategy_class:
        supported = ", ".join(f"{t}/{p}" for t, p in STRATEGIES)
        raise ValueError(
            f"Unknown strategy: {connection_type}/{requires_provisioning}. Supported: {supported}"
        )
    return strategy_class()


__all__ = [
    "STRATEGIES",
    "ConnectionStrategy",
    "FreeListingStrategy",
    "FreeListingWithProvisioningStrategy",
    "OpenContext",
    "PaidSubscriptionStrategy",
    "PaidSubscriptionWithProvisioningStrategy",
    "ProvisioningCredentials",
    "ProvisioningOutcome",
    "StrategyOutcome",
    "get_strategy",
]

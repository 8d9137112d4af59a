"""
Adapters for services outside the marketplace.

- btcpay: BTCPay Server Greenfield API client (+ dry_run variant)
- lightning: Lightning address (LNURL-pay) invoice resolution
- nwc: Nostr Wallet Connect parsing and wallet relay

Usage:
    from marketplace.adapters import create_greenfield_client

    client = create_greenfield_client(host_url, api_key, dry_run=settings.BTCPAY_DRY_RUN)
"""

from marketplace.adapters.btcpay import (
    GreenfieldClient,
    GreenfieldStore,
    GreenfieldUser,
    ProvisionedShop,
    StoreMember,
    StoreRole,
    WebhookDescriptor,
    create_greenfield_client,
)
from marketplace.adapters.dry_run import DryRunGreenfieldClient
from marketplace.adapters.lightning import LightningAddressResolver
from marketplace.adapters.nwc import (
    NWCConnectionInfo,
    RelayPayment,
    SimulatedWalletRelay,
    WalletRelay,
    identify_wallet_provider,
    load_wallet_relay,
    parse_nwc_connection_string,
)

__all__ = [
    "DryRunGreenfieldClient",
    "GreenfieldClient",
    "GreenfieldStore",
    "GreenfieldUser",
    "LightningAddressResolver",
    "NWCConnectionInfo",
    "ProvisionedShop",
    "RelayPayment",
    "SimulatedWalletRelay",
    "StoreMember",
    "StoreRole",
    "WalletRelay",
    "WebhookDescriptor",
    "create_greenfield_client",
    "identify_wallet_provider",
    "load_wallet_relay",
    "parse_nwc_connection_string",
]

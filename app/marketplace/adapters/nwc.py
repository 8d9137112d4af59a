"""
Nostr Wallet Connect (NWC) helpers and wallet relay.

A connection string looks like:

    nostr+walletconnect://<wallet-pubkey>?relay=wss://relay.example&secret=<hex>

The relay is the component that actually asks the shop owner's wallet to
pay an invoice. It is pluggable through the NWC_WALLET_RELAY setting
(dotted path to a class); the default SimulatedWalletRelay settles
instantly with a random preimage.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs, urlsplit

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

INVALID_NWC_MESSAGE = "Invalid NWC connection string format"

WALLET_PROVIDERS = (
    ("getalby", "Alby"),
    ("mutiny", "Mutiny"),
    ("zeus", "Zeus"),
    ("wallet.strike", "Strike"),
)


@dataclass(frozen=True)
class NWCConnectionInfo:
    relay_url: str
    secret: str
    wallet_pubkey: str

    def __repr__(self) -> str:
        return f"NWCConnectionInfo(relay_url={self.relay_url!r}, wallet_pubkey={self.wallet_pubkey!r})"


@dataclass(frozen=True)
class RelayPayment:
    preimage: str
    payment_id: str


def parse_nwc_connection_string(connection_string: str) -> NWCConnectionInfo:
    """
    Parse an NWC connection string.

    The relay URL is scheme://host/path; the secret comes from the
    "secret" query parameter, falling back to the URL fragment.

    Raises:
        ValueError: "Invalid NWC connection string format"
    """
    try:
        parts = urlsplit(connection_string)
    except (TypeError, ValueError) as e:
        raise ValueError(INVALID_NWC_MESSAGE) from e

    if not parts.scheme or not parts.netloc:
        raise ValueError(INVALID_NWC_MESSAGE)

    secret = (parse_qs(parts.query).get("secret") or [""])[0] or parts.fragment
    if not secret:
        raise ValueError(INVALID_NWC_MESSAGE)

    return NWCConnectionInfo(
        relay_url=f"{parts.scheme}://{parts.netloc}{parts.path}",
        secret=secret,
        wallet_pubkey=parts.hostname or parts.netloc,
    )


def identify_wallet_provider(connection_string: str) -> str:
    """
    Best-effort wallet brand from the connection string's host.

    "Unknown" means the string could not be parsed at all; a parsable
    string from an unrecognised host is "Unknown NWC Wallet".
    """
    try:
        hostname = (urlsplit(connection_string).hostname or "").lower()
    except (TypeError, ValueError):
        return "Unknown"
    if not hostname:
        return "Unknown"

    for marker, name in WALLET_PROVIDERS:
        if marker in hostname:
            return name
    return "Unknown NWC Wallet"


@runtime_checkable
class WalletRelay(Protocol):
    """
    Pays invoices on behalf of a connected wallet.

    Implementations raise WalletRelayError when the wallet refuses or the
    relay is unreachable.
    """

    def pay_invoice(self, info: NWCConnectionInfo, invoice: str) -> RelayPayment: ...


class SimulatedWalletRelay:
    """
    Relay stand-in that settles every invoice immediately.

    TODO: add a relay that publishes NIP-47 pay_invoice requests over a
    websocket connection to info.relay_url.
    """

    def pay_invoice(self, info: NWCConnectionInfo, invoice: str) -> RelayPayment:
        logger.info(
            "Sending NWC payment",
            extra={"relay_url": info.relay_url, "invoice_prefix": invoice[:50]},
        )
        return RelayPayment(
            preimage=secrets.token_hex(32),
            payment_id=f"nwc_{int(time.time() * 1000)}_{secrets.token_hex(8)}",
        )


def load_wallet_relay() -> WalletRelay:
    """Instantiate the relay class named by settings.NWC_WALLET_RELAY."""
    relay_class = import_string(settings.NWC_WALLET_RELAY)
    return relay_class()

"""
Tests for Nostr Wallet Connect helpers and the wallet relay.
"""

import re

import pytest

from marketplace.adapters import (
    SimulatedWalletRelay,
    WalletRelay,
    identify_wallet_provider,
    load_wallet_relay,
    parse_nwc_connection_string,
)
from marketplace.adapters.nwc import INVALID_NWC_MESSAGE
from marketplace.tests.factories import TEST_NWC
from marketplace.tests.mocks import FakeRelay


class TestParseConnectionString:
    def test_secret_from_query(self):
        info = parse_nwc_connection_string("nostr+walletconnect://PubKey123?relay=wss://r.example&secret=abc")

        assert info.secret == "abc"
        assert info.wallet_pubkey == "pubkey123"
        assert info.relay_url == "nostr+walletconnect://PubKey123"

    def test_secret_from_fragment(self):
        """Should fall back to the URL fragment when no secret parameter is set."""
        info = parse_nwc_connection_string("nostr+walletconnect://pubkey/path#deadbeef")

        assert info.secret == "deadbeef"
        assert info.relay_url == "nostr+walletconnect://pubkey/path"

    @pytest.mark.parametrize(
        "value",
        [
            "garbage",
            "nostr+walletconnect://pubkey?relay=wss://r.example",
            "://missing-scheme?secret=abc",
        ],
    )
    def test_invalid(self, value):
        with pytest.raises(ValueError, match=INVALID_NWC_MESSAGE):
            parse_nwc_connection_string(value)

    def test_repr_hides_secret(self):
        info = parse_nwc_connection_string(TEST_NWC)

        assert info.secret not in repr(info)


class TestIdentifyWalletProvider:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("nostr+walletconnect://relay.getalby.com?secret=a", "Alby"),
            ("nostr+walletconnect://nwc.mutinywallet.com?secret=a", "Mutiny"),
            ("nostr+walletconnect://zeusln.app?secret=a", "Zeus"),
            ("nostr+walletconnect://nwc.wallet.strike.me?secret=a", "Strike"),
            (TEST_NWC, "Unknown NWC Wallet"),
            ("not a url", "Unknown"),
        ],
    )
    def test_brand(self, value, expected):
        assert identify_wallet_provider(value) == expected


class TestWalletRelay:
    def test_simulated_relay_settles(self):
        """Should return a 32-byte hex preimage and an nwc_ payment id."""
        relay = SimulatedWalletRelay()
        info = parse_nwc_connection_string(TEST_NWC)

        payment = relay.pay_invoice(info, "lnbc10u1pjinvoice")

        assert re.fullmatch(r"[0-9a-f]{64}", payment.preimage)
        assert payment.payment_id.startswith("nwc_")

    def test_load_default_relay(self):
        relay = load_wallet_relay()

        assert isinstance(relay, SimulatedWalletRelay)
        assert isinstance(relay, WalletRelay)

    def test_load_configured_relay(self, settings):
        settings.NWC_WALLET_RELAY = "marketplace.tests.mocks.FakeRelay"

        assert isinstance(load_wallet_relay(), FakeRelay)

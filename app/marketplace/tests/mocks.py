"""
Test doubles for marketplace collaborators.

- FakeResolver / FakeRelay stand in for LNURL resolution and the NWC relay
- GreenfieldServer is an in-memory BTCPay Server behind httpx.MockTransport,
  so the real GreenfieldClient runs end to end without a network

Usage:
    server = GreenfieldServer()
    server.fail_next("POST /api/v1/users", status_code=500)
    client = server.client()
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import httpx

from marketplace.adapters.btcpay import GreenfieldClient
from marketplace.adapters.nwc import NWCConnectionInfo, RelayPayment
from marketplace.exceptions import InvoiceError, WalletRelayError

TEST_INVOICE = "lnbc10u1pjtestinvoice"


@dataclass
class FakeResolver:
    """LightningAddressResolver double recording each call."""

    invoice: str = TEST_INVOICE
    error: InvoiceError | None = None
    calls: list[tuple[str, int, str]] = field(default_factory=list)

    def resolve_invoice(self, address: str, amount_sats: int, memo: str) -> str:
        self.calls.append((address, amount_sats, memo))
        if self.error is not None:
            raise self.error
        return self.invoice


@dataclass
class FakeRelay:
    """WalletRelay double settling with a fixed preimage."""

    preimage: str = "ab" * 32
    payment_id: str = "nwc_test_payment"
    error: WalletRelayError | None = None
    calls: list[tuple[NWCConnectionInfo, str]] = field(default_factory=list)

    def pay_invoice(self, info: NWCConnectionInfo, invoice: str) -> RelayPayment:
        self.calls.append((info, invoice))
        if self.error is not None:
            raise self.error
        return RelayPayment(preimage=self.preimage, payment_id=self.payment_id)


class GreenfieldServer:
    """
    Minimal BTCPay Greenfield API served through httpx.MockTransport.

    Records every request. fail_next() makes the next N matching requests
    answer with an error status.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, list[int]] = {}
        self._counter = 0

    def fail_next(self, route: str, status_code: int = 500, times: int = 1) -> None:
        self.failures.setdefault(route, []).extend([status_code] * times)

    def routes(self) -> list[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = f"{request.method} {request.url.path}"

        pending = self.failures.get(route)
        if pending:
            return httpx.Response(pending.pop(0), text="upstream exploded")

        body = json.loads(request.content) if request.content else {}
        self._counter += 1

        if route == "POST /api/v1/users":
            return httpx.Response(
                201,
                json={"id": f"user_{self._counter}", "email": body["email"], "approved": True},
            )
        if route == "POST /api/v1/stores":
            return httpx.Response(
                201,
                json={"id": f"store_{self._counter}", "name": body["name"], "defaultCurrency": "BTC"},
            )
        if request.method == "POST" and request.url.path.endswith("/users"):
            return httpx.Response(200)
        if route == "GET /api/v1/health":
            return httpx.Response(200, json={"synchronized": True})
        return httpx.Response(404, text="not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, host_url: str = "https://btcpay.example.com", api_key: str = "key") -> GreenfieldClient:
        return GreenfieldClient(host_url, api_key, transport=self.transport())

    def client_factory(self, host_url: str, api_key: str) -> GreenfieldClient:
        """Signature of ConnectionLifecycleManager's client_factory."""
        self.last_api_key = api_key
        return self.client(host_url, api_key)

"""
Lightning address (LNURL-pay) resolution.

Turns "user@domain" plus an amount into a BOLT11 invoice:

1. GET https://{domain}/.well-known/lnurlp/{user}  -> {"callback": ...}
2. GET {callback}?amount={msats}&comment={memo}    -> {"pr": "lnbc..."}
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx

from marketplace.exceptions import InvoiceError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def split_lightning_address(address: str) -> tuple[str, str]:
    """
    Split "user@domain".

    Raises:
        InvoiceError: If the address is not exactly one non-empty user
            and one non-empty domain
    """
    parts = (address or "").strip().split("@")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvoiceError("Invalid lightning address format", details={"address": address})
    return parts[0], parts[1]


class LightningAddressResolver:
    """
    Resolves lightning addresses to invoices over HTTPS.

    Args:
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(self, *, timeout: float = 15.0, transport: httpx.BaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    def resolve_invoice(self, address: str, amount_sats: int, memo: str) -> str:
        """
        Fetch an invoice for amount_sats payable to address.

        Raises:
            InvoiceError: On malformed address, non-2xx responses, invalid
                JSON, an LNURL error status, or a missing callback/pr field
        """
        user, domain = split_lightning_address(address)
        log_context = {"operation": "resolve_invoice", "domain": domain, "amount_sats": amount_sats}
        start_time = time.time()
        logger.info("Resolving lightning address", extra=log_context)

        with httpx.Client(
            timeout=self.timeout,
            transport=self.transport,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        ) as client:
            pay_request = self._get_json(client, f"https://{domain}/.well-known/lnurlp/{user}")
            callback = pay_request.get("callback")
            if not callback:
                raise InvoiceError("Invalid lnurl response: missing callback")

            invoice_response = self._get_json(
                client,
                callback,
                params={"amount": amount_sats * 1000, "comment": memo},
            )

        invoice = invoice_response.get("pr")
        if not invoice:
            raise InvoiceError("Invalid invoice response: missing payment request")

        logger.info(
            "Lightning address resolved",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return invoice

    @staticmethod
    def _get_json(client: httpx.Client, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = client.get(url, params=params)
        except httpx.HTTPError as e:
            raise InvoiceError(f"Lightning address request failed: {e}") from e

        if response.is_error:
            raise InvoiceError(
                f"Lightning address request failed: {response.status_code} {response.reason_phrase}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvoiceError("Lightning address returned invalid JSON") from e

        if not isinstance(data, dict):
            raise InvoiceError("Lightning address returned an unexpected payload")
        if str(data.get("status", "")).upper() == "ERROR":
            raise InvoiceError(f"Lightning address error: {data.get('reason', 'unknown reason')}")
        return data

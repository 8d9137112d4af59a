"""
Payment initiator for paid subscriptions.

Settles a connection's subscription by paying the provider's lightning
address from the shop owner's NWC wallet:

1. Load the connection with its shop and provider
2. Check subscription amount and provider lightning address
3. Encrypt and store the wallet connection string
4. Resolve an invoice from the lightning address
5. Ask the wallet relay to pay it
6. Append a PaymentHistory row and move the connection to ACTIVE or FAILED

Configuration problems (steps 1-2) fail the connection without any
outbound call and without a PaymentHistory row.

Usage:
    initiator = PaymentInitiator.from_settings()
    result = initiator.initiate_payment(connection.id, nwc_connection_string)
    if not result.success:
        print(result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction
from django_fsm import can_proceed

from core.encryption import get_secret_store
from core.services import BaseService
from marketplace.adapters.lightning import LightningAddressResolver
from marketplace.adapters.nwc import (
    identify_wallet_provider,
    load_wallet_relay,
    parse_nwc_connection_string,
)
from marketplace.audit import AuditEvent, AuditLogger
from marketplace.conf import MarketplaceConfig
from marketplace.exceptions import InvoiceError, WalletRelayError
from marketplace.models import Connection, PaymentHistory
from marketplace.state_machines import PaymentHistoryStatus, PaymentMethod

if TYPE_CHECKING:
    from uuid import UUID

    from core.encryption import SecretStore
    from marketplace.adapters.nwc import WalletRelay


logger = logging.getLogger(__name__)

INVOICE_FAILURE_MESSAGE = "Failed to generate invoice from lightning address"


@dataclass
class PaymentResult:
    """
    Outcome of a payment attempt.

    amount and recipient are set once the payment reached the invoice step.
    """

    success: bool
    preimage: str | None = None
    payment_id: str | None = None
    amount: int | None = None
    recipient: str | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str, **kwargs) -> PaymentResult:
        return cls(success=False, error=error, **kwargs)


class PaymentInitiator(BaseService):
    """
    Pays subscriptions over NWC.

    Collaborators are injected so tests can substitute the resolver and
    relay without patching.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        resolver: LightningAddressResolver,
        relay: WalletRelay,
        audit: AuditLogger | None = None,
    ):
        self.secret_store = secret_store
        self.resolver = resolver
        self.relay = relay
        self.audit = audit or AuditLogger()

    @classmethod
    def from_settings(cls, config: MarketplaceConfig | None = None) -> PaymentInitiator:
        config = config or MarketplaceConfig.from_settings()
        return cls(
            secret_store=get_secret_store(),
            resolver=LightningAddressResolver(timeout=config.lnurl_timeout_seconds),
            relay=load_wallet_relay(),
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def initiate_payment(self, connection_id: UUID, wallet_connection_secret: str) -> PaymentResult:
        """
        Pay the first (or next) subscription period for a connection.

        Never raises; every failure is reported in the returned result.
        """
        connection = self._load(connection_id)
        if connection is None:
            return PaymentResult.failed("Connection not found")
        return self.pay(connection, wallet_connection_secret)

    def retry_payment(self, connection_id: UUID) -> PaymentResult:
        """Re-run a payment with the wallet secret stored on the connection."""
        connection = self._load(connection_id)
        if connection is None:
            return PaymentResult.failed("Connection not found")
        return self.retry(connection)

    def pay(self, connection: Connection, wallet_connection_secret: str) -> PaymentResult:
        """
        Same as initiate_payment() but operates on a loaded connection,
        which is updated in place.
        """
        try:
            return self._pay(connection, wallet_connection_secret)
        except Exception as e:
            logger.exception(
                "Error initiating connection payment",
                extra={"connection_id": str(connection.pk)},
            )
            return PaymentResult.failed(getattr(e, "message", None) or str(e) or "Unknown error")

    def retry(self, connection: Connection) -> PaymentResult:
        if not connection.encrypted_nwc_connection_string:
            return PaymentResult.failed("NWC connection string not found")
        try:
            secret = self.secret_store.decrypt(connection.encrypted_nwc_connection_string)
        except Exception as e:
            logger.exception(
                "Could not read stored NWC connection string",
                extra={"connection_id": str(connection.pk)},
            )
            return PaymentResult.failed(getattr(e, "message", None) or str(e))
        return self.pay(connection, secret)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _load(connection_id: UUID) -> Connection | None:
        return (
            Connection.objects.select_related("shop", "provider")
            .filter(pk=connection_id)
            .first()
        )

    def _pay(self, connection: Connection, wallet_connection_secret: str) -> PaymentResult:
        log_context = {"connection_id": str(connection.pk), "operation": "initiate_payment"}

        amount = connection.subscription_amount
        if not amount:
            return self._configuration_failure(connection, "No subscription amount configured")

        recipient = connection.provider.lightning_address
        if not recipient:
            return self._configuration_failure(connection, "Provider lightning address not configured")

        connection.encrypted_nwc_connection_string = self.secret_store.encrypt(wallet_connection_secret)
        connection.save(update_fields=["encrypted_nwc_connection_string"])
        self.audit.record(AuditEvent.NWC_CONNECTION_STORED, connection)
        self.audit.record(AuditEvent.PAYMENT_INITIATED, connection, {"amount": amount})

        memo = f"{connection.shop.name} subscription to {connection.provider.name}"
        result = self._send(wallet_connection_secret, amount, recipient, memo)
        wallet_provider = identify_wallet_provider(wallet_connection_secret)

        with transaction.atomic():
            if result.success:
                PaymentHistory.objects.create(
                    connection=connection,
                    amount=amount,
                    status=PaymentHistoryStatus.SUCCESS,
                    payment_method=PaymentMethod.NWC,
                    wallet_provider=wallet_provider,
                    preimage=result.preimage,
                )
                connection.nwc_payment_id = result.payment_id
                self._apply(connection, "activate")
                logger.info(
                    "Payment successful",
                    extra={**log_context, "amount_sats": amount, "payment_id": result.payment_id},
                )
            else:
                PaymentHistory.objects.create(
                    connection=connection,
                    amount=amount,
                    status=PaymentHistoryStatus.FAILED,
                    payment_method=PaymentMethod.NWC,
                    wallet_provider=wallet_provider,
                    error_message=result.error,
                )
                self._apply(connection, "fail", f"Payment failed: {result.error}")
                logger.error("Payment failed", extra={**log_context, "error": result.error})

        self.audit.record(
            AuditEvent.PAYMENT_SUCCEEDED if result.success else AuditEvent.PAYMENT_FAILED,
            connection,
            {"amount": amount, "error": result.error},
        )
        return result

    def _send(self, wallet_connection_secret: str, amount: int, recipient: str, memo: str) -> PaymentResult:
        try:
            info = parse_nwc_connection_string(wallet_connection_secret)
        except ValueError as e:
            return PaymentResult.failed(str(e))

        try:
            invoice = self.resolver.resolve_invoice(recipient, amount, memo)
        except InvoiceError as e:
            logger.warning(
                "Error generating invoice from lightning address",
                extra={"reason": e.message, "amount_sats": amount},
            )
            return PaymentResult.failed(INVOICE_FAILURE_MESSAGE, amount=amount, recipient=recipient)

        try:
            payment = self.relay.pay_invoice(info, invoice)
        except WalletRelayError as e:
            return PaymentResult.failed(e.message, amount=amount, recipient=recipient)

        return PaymentResult(
            success=True,
            preimage=payment.preimage,
            payment_id=payment.payment_id,
            amount=amount,
            recipient=recipient,
        )

    def _configuration_failure(self, connection: Connection, error: str) -> PaymentResult:
        logger.warning(
            "Payment not attempted: configuration incomplete",
            extra={"connection_id": str(connection.pk), "error": error},
        )
        self._apply(connection, "fail", error)
        return PaymentResult.failed(error)

    def _apply(self, connection: Connection, transition_name: str, *args) -> None:
        """Run a transition if the current status allows it, then save."""
        transition = getattr(connection, transition_name)
        old_status = connection.status
        if not can_proceed(transition):
            logger.warning(
                f"Skipping {transition_name}: not allowed from {old_status}",
                extra={"connection_id": str(connection.pk), "status": old_status},
            )
            connection.save()
            return
        transition(*args)
        connection.save()
        self.audit.status_changed(connection, old_status, connection.status)

"""
PaymentHistory model: append-only ledger of payment attempts and
lifecycle markers for a connection.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from marketplace.exceptions import MarketplaceError


class ImmutableRecordError(MarketplaceError):
    default_error_code: str = "PAYMENT_HISTORY_IMMUTABLE"


class PaymentHistory(UUIDPrimaryKeyMixin, BaseModel):
    """
    One row per payment attempt, webhook marker or audit event.

    The status column is free text. Besides "success" and "failed" it
    carries webhook markers ("store_deleted_webhook", ...) and audit event
    names ("connection.created", ...). Audit rows use amount 0 and
    payment_method "audit_log".

    Rows are never updated or deleted.
    """

    connection = models.ForeignKey(
        "marketplace.Connection",
        on_delete=models.CASCADE,
        related_name="payment_history",
    )
    amount = models.PositiveBigIntegerField(default=0, help_text="Amount in sats")
    status = models.CharField(max_length=64, db_index=True)
    payment_method = models.CharField(max_length=32)
    wallet_provider = models.CharField(max_length=100, null=True, blank=True)
    preimage = models.CharField(max_length=128, null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment History"
        verbose_name_plural = "Payment History"
        indexes = [
            models.Index(fields=["connection", "created_at"], name="payhist_conn_created_idx"),
        ]

    def __str__(self) -> str:
        return f"PaymentHistory({self.status}, {self.amount} sats)"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                "Payment history rows are append-only",
                details={"pk": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "Payment history rows cannot be deleted",
            details={"pk": str(self.pk)},
        )

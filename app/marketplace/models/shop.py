"""
Shop model.

A shop is a merchant listing owned by a user. When the shop is connected
to a BTCPay Server provider, the account created for it on that server is
recorded in the btcpay_* credential fields.
"""

from __future__ import annotations

import re

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

USERNAME_STRIP_RE = re.compile(r"[^a-z0-9]")


class Shop(UUIDPrimaryKeyMixin, BaseModel):
    """
    Merchant listing in the marketplace.

    Fields:
        owner: User who created and manages the shop
        name: Display name (required)
        contact_email / lightning_address: Used to derive provisioning email
        btcpay_store_id / btcpay_user_id / btcpay_username: Provider-side
            credentials, set after successful provisioning and cleared when
            the provider reports the store deleted
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="shops",
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    website = models.URLField(max_length=500, null=True, blank=True)
    contact_email = models.EmailField(null=True, blank=True)
    lightning_address = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Shop's own lightning address (user@domain)",
    )
    is_public = models.BooleanField(default=True)
    accepts_bitcoin = models.BooleanField(default=True)

    # ==========================================================================
    # Provider credentials
    # ==========================================================================

    btcpay_store_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Store id on the provider's BTCPay Server (webhook lookup key)",
    )
    btcpay_user_id = models.CharField(max_length=255, null=True, blank=True)
    btcpay_username = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Shop"
        verbose_name_plural = "Shops"
        indexes = [
            models.Index(fields=["owner", "created_at"], name="shop_owner_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Shop({self.name})"

    @property
    def has_provider_credentials(self) -> bool:
        return bool(self.btcpay_store_id)

    def clear_provider_credentials(self) -> None:
        """Null the provider credential fields. Caller saves."""
        self.btcpay_store_id = None
        self.btcpay_user_id = None
        self.btcpay_username = None

    def provisioning_username(self) -> str:
        """
        Username to request on the provider.

        An existing btcpay_username wins so retries reuse the same account
        name; otherwise the lower-cased name with non-alphanumerics removed,
        suffixed with a short form of the shop id.
        """
        if self.btcpay_username:
            return self.btcpay_username
        base = USERNAME_STRIP_RE.sub("", self.name.lower())
        return f"{base}_{self.id.hex[:8]}"

    def provisioning_email(self, username: str) -> str:
        return self.contact_email or self.lightning_address or f"{username}@temp.placeholder"

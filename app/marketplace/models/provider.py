"""
InfrastructureProvider model.

A provider runs infrastructure (a BTCPay Server instance, BLFS node, ...)
that shops connect to. Credentials for the provider's management API are
stored encrypted; decrypt them through core.encryption.SecretStore.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from marketplace.state_machines import ConnectionStatus, ServiceType

if TYPE_CHECKING:
    from core.encryption import SecretStore

OCCUPYING_STATUSES = (
    ConnectionStatus.PENDING,
    ConnectionStatus.PENDING_SETUP,
    ConnectionStatus.ACTIVE,
)


class InfrastructureProvider(UUIDPrimaryKeyMixin, BaseModel):
    """
    Infrastructure offered to shops.

    Fields:
        owner: User operating the infrastructure
        service_type: BTCPAY_SERVER, BLFS or OTHER
        host_url: Base URL of the provider's server
        encrypted_api_key: Greenfield API key (encrypted)
        encrypted_webhook_secret: Secret used to sign webhooks (encrypted)
        lightning_address: Where subscription payments are sent
        total_slots: Capacity; None means unlimited
        onboarding_*: Content shown to shop owners after connecting
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="infrastructure_providers",
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    service_type = models.CharField(
        max_length=20,
        choices=ServiceType.choices,
        default=ServiceType.OTHER,
    )
    host_url = models.URLField(max_length=500, null=True, blank=True)

    # ==========================================================================
    # Secrets (encrypted at rest)
    # ==========================================================================

    encrypted_api_key = models.TextField(null=True, blank=True)
    encrypted_webhook_secret = models.TextField(null=True, blank=True)

    # ==========================================================================
    # Payments & Capacity
    # ==========================================================================

    lightning_address = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Lightning address receiving subscription payments (user@domain)",
    )
    contact_email = models.EmailField(null=True, blank=True)
    total_slots = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum concurrent shops; empty for unlimited",
    )

    # ==========================================================================
    # Onboarding content
    # ==========================================================================

    onboarding_welcome_text = models.TextField(blank=True, default="")
    onboarding_setup_steps = models.JSONField(
        default=list,
        blank=True,
        help_text='List of {"text": ..., "order": n}',
    )
    onboarding_external_links = models.JSONField(default=list, blank=True)
    onboarding_contact_info = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Infrastructure Provider"
        verbose_name_plural = "Infrastructure Providers"

    def __str__(self) -> str:
        return f"InfrastructureProvider({self.name}, {self.service_type})"

    @property
    def requires_provisioning(self) -> bool:
        """True for BTCPay Server providers that have a host URL."""
        return self.service_type == ServiceType.BTCPAY_SERVER and bool(self.host_url)

    @property
    def available_slots(self) -> int | None:
        if self.total_slots is None:
            return None
        used = self.connections.filter(status__in=OCCUPYING_STATUSES).count()
        return max(0, self.total_slots - used)

    def sorted_setup_steps(self) -> list[dict]:
        return sorted(self.onboarding_setup_steps or [], key=lambda step: step.get("order", 0))

    def set_api_key(self, store: SecretStore, api_key: str) -> None:
        self.encrypted_api_key = store.encrypt(api_key)

    def get_api_key(self, store: SecretStore) -> str | None:
        if not self.encrypted_api_key:
            return None
        return store.decrypt(self.encrypted_api_key)

    def set_webhook_secret(self, store: SecretStore, secret: str) -> None:
        self.encrypted_webhook_secret = store.encrypt(secret)

    def get_webhook_secret(self, store: SecretStore) -> str | None:
        if not self.encrypted_webhook_secret:
            return None
        return store.decrypt(self.encrypted_webhook_secret)

"""
Immutable configuration for the marketplace services.

Settings are read once here and handed to services through their
constructors, so the lifecycle code never touches django.conf directly
and tests can build a config inline.

Usage:
    from marketplace.conf import MarketplaceConfig

    config = MarketplaceConfig.from_settings()
    if config.features.nwc_payments:
        ...

    # In tests
    config = MarketplaceConfig(provisioning_retry_delay_seconds=0)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from marketplace.models.connection import MAX_CONNECTION_RETRIES


@dataclass(frozen=True)
class FeatureFlags:
    """
    Runtime switches for optional integrations.

    Attributes:
        btcpay_integration: Provision accounts on BTCPay providers
        nwc_payments: Allow paid subscriptions settled over NWC
        provider_webhooks: Accept provider webhook deliveries
        auto_retry_failed_connections: Periodic retry sweep enabled
        email_notifications: Notify owners about lifecycle changes
    """

    btcpay_integration: bool = True
    nwc_payments: bool = True
    provider_webhooks: bool = True
    auto_retry_failed_connections: bool = True
    email_notifications: bool = False

    @classmethod
    def from_settings(cls) -> FeatureFlags:
        return cls(
            btcpay_integration=settings.FEATURE_BTCPAY_INTEGRATION,
            nwc_payments=settings.FEATURE_NWC_PAYMENTS,
            provider_webhooks=settings.FEATURE_PROVIDER_WEBHOOKS,
            auto_retry_failed_connections=settings.FEATURE_AUTO_RETRY,
            email_notifications=settings.FEATURE_EMAIL_NOTIFICATIONS,
        )

    def is_enabled(self, name: str) -> bool:
        return bool(getattr(self, name, False))


@dataclass(frozen=True)
class MarketplaceConfig:
    """
    Lifecycle tuning knobs.

    Attributes:
        max_retries: Manual retry budget per connection, at most
            MAX_CONNECTION_RETRIES
        provisioning_max_attempts: In-request provisioning attempts
        provisioning_retry_delay_seconds: Constant delay between attempts
        btcpay_dry_run: Use the dry-run Greenfield client
        btcpay_timeout_seconds: Greenfield HTTP timeout
        lnurl_timeout_seconds: LNURL HTTP timeout
        features: Feature flags
    """

    max_retries: int = 5
    provisioning_max_attempts: int = 2
    provisioning_retry_delay_seconds: float = 5
    btcpay_dry_run: bool = False
    btcpay_timeout_seconds: float = 30
    lnurl_timeout_seconds: float = 15
    features: FeatureFlags = field(default_factory=FeatureFlags)

    def __post_init__(self):
        # retry_count is bounded by a check constraint on Connection
        if not 1 <= self.max_retries <= MAX_CONNECTION_RETRIES:
            raise ImproperlyConfigured(
                f"CONNECTION_MAX_RETRIES must be between 1 and {MAX_CONNECTION_RETRIES}, got {self.max_retries}"
            )

    @classmethod
    def from_settings(cls) -> MarketplaceConfig:
        return cls(
            max_retries=settings.CONNECTION_MAX_RETRIES,
            provisioning_max_attempts=settings.PROVISIONING_MAX_ATTEMPTS,
            provisioning_retry_delay_seconds=settings.PROVISIONING_RETRY_DELAY_SECONDS,
            btcpay_dry_run=settings.BTCPAY_DRY_RUN,
            btcpay_timeout_seconds=settings.BTCPAY_API_TIMEOUT_SECONDS,
            lnurl_timeout_seconds=settings.LNURL_TIMEOUT_SECONDS,
            features=FeatureFlags.from_settings(),
        )

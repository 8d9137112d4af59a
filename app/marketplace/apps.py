"""
Marketplace app configuration.

This app connects shops to infrastructure providers:
- Shop / provider / connection models and the connection lifecycle
- BTCPay Greenfield provisioning
- Subscription payments over NWC
- BTCPay store webhooks
"""

from django.apps import AppConfig


class MarketplaceConfig(AppConfig):
    """Configuration for the marketplace application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace"
    verbose_name = "Marketplace"

    def ready(self):
        # Registers the store event handlers
        from marketplace.webhooks import handlers  # noqa: F401

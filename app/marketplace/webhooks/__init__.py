"""
Webhook handling for BTCPay Server store events.

Usage:
    # In urls.py
    from marketplace.webhooks.views import btcpay_webhook

    urlpatterns = [
        path("webhooks/btcpay/", btcpay_webhook, name="btcpay_webhook"),
    ]
"""

from marketplace.webhooks.handlers import (
    BTCPayWebhookEvent,
    dispatch_webhook,
    register_handler,
)
from marketplace.webhooks.signature import compute_signature, verify_signature
from marketplace.webhooks.views import btcpay_webhook

__all__ = [
    "BTCPayWebhookEvent",
    "btcpay_webhook",
    "compute_signature",
    "dispatch_webhook",
    "register_handler",
    "verify_signature",
]

"""
Webhook endpoint for BTCPay Server store events.

The view:
1. Rejects deliveries while provider webhooks are switched off
2. Rate limits per client IP
3. Requires a signature header and a JSON body with storeId and type
4. Finds the shop and its BTCPay connection (unknown stores are acknowledged)
5. Verifies the signature when the provider has a webhook secret
6. Dispatches to the handler registry and acknowledges

Usage:
    # In urls.py
    from marketplace.webhooks.views import btcpay_webhook

    urlpatterns = [
        path("webhooks/btcpay/", btcpay_webhook, name="btcpay_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.exceptions import DecryptionError
from core.helpers import get_client_ip
from core.rate_limit import CacheRateLimiter, get_policy
from marketplace.audit import AuditEvent, AuditLogger
from marketplace.conf import FeatureFlags
from marketplace.exceptions import SignatureError
from marketplace.models import Connection, Shop
from marketplace.services import ConnectionLifecycleManager
from marketplace.state_machines import ServiceType
from marketplace.webhooks.handlers import BTCPayWebhookEvent, dispatch_webhook
from marketplace.webhooks.signature import SIGNATURE_HEADER, verify_signature

if TYPE_CHECKING:
    from core.protocols import RateLimiter


logger = logging.getLogger(__name__)

RECEIVED = {"received": True}


def find_btcpay_connection(store_id: str) -> Connection | None:
    """Newest connection of the shop owning store_id to a BTCPay provider."""
    shop = Shop.objects.filter(btcpay_store_id=store_id).first()
    if shop is None:
        return None
    return (
        Connection.objects.select_related("shop", "provider")
        .filter(shop=shop, provider__service_type=ServiceType.BTCPAY_SERVER)
        .exclude(provider__host_url__isnull=True)
        .exclude(provider__host_url="")
        .order_by("-created_at")
        .first()
    )


@csrf_exempt
@require_POST
def btcpay_webhook(
    request: HttpRequest,
    *,
    rate_limiter: RateLimiter | None = None,
    manager: ConnectionLifecycleManager | None = None,
    features: FeatureFlags | None = None,
) -> JsonResponse:
    """
    Receive a BTCPay store webhook.

    Collaborators default to the configured ones; tests and URLconfs may
    pass their own.

    Returns:
        JsonResponse with status:
        - 200: Accepted, or ignored because the store is unknown
        - 400: Body is not JSON or lacks storeId/type
        - 401: Signature missing or invalid
        - 429: Rate limited
        - 500: Processing failed
        - 503: Webhooks disabled
    """
    audit = manager.audit if manager else AuditLogger()
    features = features or FeatureFlags.from_settings()
    if not features.provider_webhooks:
        return JsonResponse({"error": "Webhooks are currently disabled"}, status=503)

    client_ip = get_client_ip(request)
    limit = (rate_limiter or CacheRateLimiter()).check(f"webhook:{client_ip}", get_policy("webhook"))
    if not limit.allowed:
        audit.security_event(AuditEvent.SECURITY_RATE_LIMIT_EXCEEDED, ip_address=client_ip, endpoint="webhook")
        response = JsonResponse({"error": "Too many requests"}, status=429)
        for header, value in limit.headers().items():
            response[header] = value
        return response

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("BTCPay webhook received without signature header")
        audit.security_event(AuditEvent.SECURITY_INVALID_SIGNATURE, ip_address=client_ip, reason="missing")
        return JsonResponse({"error": "Missing signature"}, status=401)

    body = request.body
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        logger.warning("BTCPay webhook body is not valid JSON")
        return JsonResponse({"error": "Invalid payload"}, status=400)

    if not isinstance(payload, dict) or not payload.get("storeId") or not payload.get("type"):
        logger.warning("BTCPay webhook missing required fields")
        return JsonResponse({"error": "Missing required fields"}, status=400)

    event = BTCPayWebhookEvent.from_payload(payload)
    logger.info(
        f"Received BTCPay webhook: {event.type}",
        extra={"btcpay_store_id": event.store_id, "event_type": event.type},
    )

    connection = find_btcpay_connection(event.store_id)
    if connection is None:
        logger.info(
            "No BTCPay connection for webhook store, ignoring",
            extra={"btcpay_store_id": event.store_id},
        )
        return JsonResponse(RECEIVED)

    manager = manager or ConnectionLifecycleManager.from_settings()

    try:
        secret = connection.provider.get_webhook_secret(manager.secret_store)
    except DecryptionError:
        logger.error(
            "Provider webhook secret could not be decrypted",
            extra={"provider_id": str(connection.provider_id)},
            exc_info=True,
        )
        return JsonResponse({"error": "Webhook processing failed"}, status=500)

    if secret:
        try:
            verify_signature(body, signature, secret)
        except SignatureError as e:
            logger.error("BTCPay webhook signature invalid", extra={"btcpay_store_id": event.store_id})
            audit.security_event(
                AuditEvent.SECURITY_INVALID_SIGNATURE,
                ip_address=client_ip,
                provider_id=str(connection.provider_id),
                reason=e.details.get("reason"),
            )
            return JsonResponse({"error": "Invalid signature"}, status=401)
    else:
        logger.warning(
            "Provider has no webhook secret, skipping signature verification",
            extra={"provider_id": str(connection.provider_id)},
        )

    try:
        result = dispatch_webhook(event, connection, manager)
    except Exception as e:
        logger.error(
            f"Error processing BTCPay webhook: {type(e).__name__}",
            extra={"btcpay_store_id": event.store_id, "event_type": event.type},
            exc_info=True,
        )
        return JsonResponse({"error": "Webhook processing failed"}, status=500)

    if not result.success:
        logger.warning(
            "BTCPay webhook handler reported failure",
            extra={"event_type": event.type, "error": result.error},
        )
    return JsonResponse(RECEIVED)

"""
Webhook event handlers for BTCPay store events.

This module provides a handler registry and implementations for the
store events a provider's BTCPay Server sends about shops it hosts.

Usage:
    from marketplace.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("store.custom")
    def handle_custom(event, connection, manager) -> ServiceResult:
        ...

    result = dispatch_webhook(event, connection, manager)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult
from marketplace.audit import AuditEvent

if TYPE_CHECKING:
    from typing import Any

    from marketplace.models import Connection
    from marketplace.services.connection_lifecycle import ConnectionLifecycleManager


logger = logging.getLogger(__name__)


@dataclass
class BTCPayWebhookEvent:
    """Decoded webhook delivery."""

    type: str
    store_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> BTCPayWebhookEvent:
        return cls(type=payload["type"], store_id=payload["storeId"], payload=payload)

    @property
    def user_id(self) -> str | None:
        return self.payload.get("userId")

    @property
    def timestamp(self) -> Any:
        return self.payload.get("timestamp")


Handler = Callable[[BTCPayWebhookEvent, "Connection", "ConnectionLifecycleManager"], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable[[Handler], Handler]:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: BTCPay event type (e.g., "store.deleted")
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(
    event: BTCPayWebhookEvent,
    connection: Connection,
    manager: ConnectionLifecycleManager,
) -> ServiceResult:
    """
    Dispatch an event to its handler.

    Unknown event types are logged and acknowledged with success so the
    provider does not keep redelivering them.
    """
    manager.audit.record(
        AuditEvent.BTCPAY_WEBHOOK_RECEIVED,
        connection,
        {"event_type": event.type, "btcpay_store_id": event.store_id},
    )

    handler = WEBHOOK_HANDLERS.get(event.type)
    if not handler:
        logger.info(
            f"No handler registered for event type: {event.type}",
            extra={"btcpay_store_id": event.store_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.type} to handler",
        extra={"btcpay_store_id": event.store_id, "connection_id": str(connection.id)},
    )
    return handler(event, connection, manager)


# =============================================================================
# Store Handlers
# =============================================================================


@register_handler("store.modified")
def handle_store_modified(
    event: BTCPayWebhookEvent,
    connection: Connection,
    manager: ConnectionLifecycleManager,
) -> ServiceResult:
    """Informational: record the change, leave the status alone."""
    row = manager.record_store_modified(connection)
    return ServiceResult.success(row)


@register_handler("store.user.removed")
def handle_store_user_removed(
    event: BTCPayWebhookEvent,
    connection: Connection,
    manager: ConnectionLifecycleManager,
) -> ServiceResult:
    row = manager.handle_member_removed(connection, event.user_id)
    if row is not None:
        logger.warning(
            "Shop owner removed from BTCPay store, connection disconnected",
            extra={"connection_id": str(connection.id), "btcpay_store_id": event.store_id},
        )
    return ServiceResult.success(row)


@register_handler("store.deleted")
def handle_store_deleted(
    event: BTCPayWebhookEvent,
    connection: Connection,
    manager: ConnectionLifecycleManager,
) -> ServiceResult:
    row = manager.handle_store_deleted(connection)
    logger.warning(
        "BTCPay store deleted, connection disconnected",
        extra={"connection_id": str(connection.id), "btcpay_store_id": event.store_id},
    )
    return ServiceResult.success(row)

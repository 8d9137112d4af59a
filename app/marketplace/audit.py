"""
Audit trail for connection lifecycle events.

Events are logged through the module logger and, when tied to a
connection, persisted as PaymentHistory rows (amount 0, payment_method
"audit_log", status = event name, error_message = JSON metadata).
Security events have no connection and are only logged.

Audit writes never raise: a failed insert is logged and swallowed so the
lifecycle operation that triggered it still completes.

Usage:
    from marketplace.audit import AuditLogger, AuditEvent

    audit = AuditLogger()
    audit.record(AuditEvent.CONNECTION_CREATED, connection, {"type": "FREE_LISTING"})
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError, transaction

from marketplace.models import PaymentHistory
from marketplace.state_machines import PaymentMethod

if TYPE_CHECKING:
    from typing import Any

    from marketplace.models import Connection

logger = logging.getLogger(__name__)


class AuditEvent:
    CONNECTION_CREATED = "connection.created"
    CONNECTION_STATUS_CHANGED = "connection.status_changed"
    CONNECTION_RETRY_ATTEMPTED = "connection.retry_attempted"
    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    BTCPAY_STORE_CREATED = "btcpay.store_created"
    BTCPAY_USER_CREATED = "btcpay.user_created"
    BTCPAY_WEBHOOK_RECEIVED = "btcpay.webhook_received"
    NWC_CONNECTION_STORED = "nwc.connection_stored"
    NWC_PAYMENT_SENT = "nwc.payment_sent"
    SECURITY_INVALID_SIGNATURE = "security.invalid_signature"
    SECURITY_RATE_LIMIT_EXCEEDED = "security.rate_limit_exceeded"


class AuditLogger:
    """Writes audit rows and log lines for lifecycle events."""

    def record(
        self,
        event: str,
        connection: Connection,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentHistory | None:
        """
        Log an event and append an audit row to the connection's history.

        Returns:
            The created row, or None if the write failed
        """
        metadata = metadata or {}
        logger.info(
            f"Audit: {event}",
            extra={"audit_event": event, "connection_id": str(connection.pk), **_safe_extra(metadata)},
        )
        try:
            with transaction.atomic():
                return PaymentHistory.objects.create(
                    connection=connection,
                    amount=0,
                    status=event,
                    payment_method=PaymentMethod.AUDIT_LOG,
                    error_message=json.dumps(metadata, cls=DjangoJSONEncoder),
                )
        except (DatabaseError, TypeError, ValueError):
            logger.exception(
                "Failed to write audit row",
                extra={"audit_event": event, "connection_id": str(connection.pk)},
            )
            return None

    def status_changed(self, connection: Connection, old_status: str, new_status: str, **metadata) -> None:
        if old_status == new_status:
            return
        self.record(
            AuditEvent.CONNECTION_STATUS_CHANGED,
            connection,
            {"old_status": old_status, "new_status": new_status, **metadata},
        )

    def security_event(self, event: str, **metadata) -> None:
        """Security events are logged at WARNING and never persisted."""
        logger.warning(
            f"Security event: {event}",
            extra={"security_event": event, **_safe_extra(metadata)},
        )


_RESERVED_LOG_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _safe_extra(metadata: dict[str, Any]) -> dict[str, Any]:
    # LogRecord rejects extra keys that shadow its own attributes
    return {k: v for k, v in metadata.items() if k not in _RESERVED_LOG_KEYS}

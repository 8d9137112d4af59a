"""
Tests for the lifecycle audit trail.
"""

import json
import logging

from marketplace.audit import AuditEvent, AuditLogger
from marketplace.models import PaymentHistory
from marketplace.state_machines import PaymentMethod


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_record_writes_audit_row(self, db, pending_connection):
        """Should persist a zero-amount audit_log row with JSON metadata."""
        row = AuditLogger().record(
            AuditEvent.CONNECTION_CREATED,
            pending_connection,
            {"connection_type": "FREE_LISTING"},
        )

        assert row is not None
        assert row.connection_id == pending_connection.id
        assert row.amount == 0
        assert row.status == "connection.created"
        assert row.payment_method == PaymentMethod.AUDIT_LOG
        assert json.loads(row.error_message) == {"connection_type": "FREE_LISTING"}

    def test_record_tolerates_reserved_log_keys(self, db, pending_connection, caplog):
        """Should log metadata whose keys clash with LogRecord attributes."""
        with caplog.at_level(logging.INFO, logger="marketplace.audit"):
            row = AuditLogger().record(
                AuditEvent.PAYMENT_INITIATED,
                pending_connection,
                {"name": "shadowed", "message": "shadowed", "amount": 10},
            )

        assert row is not None
        assert "Audit: payment.initiated" in caplog.text

    def test_status_changed_records_transition(self, db, pending_connection):
        AuditLogger().status_changed(pending_connection, "PENDING", "ACTIVE")

        row = PaymentHistory.objects.get(
            connection=pending_connection,
            status=AuditEvent.CONNECTION_STATUS_CHANGED,
        )
        assert json.loads(row.error_message) == {"old_status": "PENDING", "new_status": "ACTIVE"}

    def test_status_changed_skips_no_op(self, db, pending_connection):
        """Should not record a change when the status stayed the same."""
        AuditLogger().status_changed(pending_connection, "ACTIVE", "ACTIVE")

        assert not PaymentHistory.objects.filter(connection=pending_connection).exists()

    def test_security_event_is_only_logged(self, db, caplog):
        """Should log at WARNING without writing a row."""
        with caplog.at_level(logging.WARNING, logger="marketplace.audit"):
            AuditLogger().security_event(
                AuditEvent.SECURITY_INVALID_SIGNATURE,
                ip_address="10.0.0.1",
                reason="mismatch",
            )

        assert "Security event: security.invalid_signature" in caplog.text
        assert PaymentHistory.objects.count() == 0

"""
Tests for Connection FSM transitions.

Valid transitions:
    PENDING/ACTIVE -> ACTIVE (activate)
    PENDING/ACTIVE -> PENDING_SETUP (mark_pending_setup)
    PENDING -> FAILED (fail)
    FAILED/PENDING_SETUP -> PENDING (begin_retry)
    ACTIVE/FAILED -> DISCONNECTED (disconnect)
"""

import pytest
from django_fsm import TransitionNotAllowed

from marketplace.exceptions import RetryLimitExceededError
from marketplace.models import Connection
from marketplace.state_machines import ConnectionStatus
from marketplace.tests.factories import ConnectionFactory


class TestActivate:
    def test_from_pending(self, db):
        """Should activate and clear setup_error."""
        connection = ConnectionFactory(setup_error="old")

        connection.activate()
        connection.save()

        stored = Connection.objects.get(pk=connection.pk)
        assert stored.status == ConnectionStatus.ACTIVE
        assert stored.setup_error is None

    def test_from_active_is_allowed(self, db):
        """Should allow re-activation (paid connection finishing provisioning)."""
        connection = ConnectionFactory(status=ConnectionStatus.ACTIVE)

        connection.activate()

        assert connection.status == ConnectionStatus.ACTIVE

    @pytest.mark.parametrize(
        "status",
        [ConnectionStatus.FAILED, ConnectionStatus.PENDING_SETUP, ConnectionStatus.DISCONNECTED],
    )
    def test_from_other_states_rejected(self, db, status):
        connection = ConnectionFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            connection.activate()


class TestMarkPendingSetup:
    @pytest.mark.parametrize("status", [ConnectionStatus.PENDING, ConnectionStatus.ACTIVE])
    def test_allowed_sources(self, db, status):
        """Should move to PENDING_SETUP and record the error."""
        connection = ConnectionFactory(status=status)

        connection.mark_pending_setup("BTCPay unreachable")

        assert connection.status == ConnectionStatus.PENDING_SETUP
        assert connection.setup_error == "BTCPay unreachable"

    def test_from_failed_rejected(self, db):
        connection = ConnectionFactory(status=ConnectionStatus.FAILED)

        with pytest.raises(TransitionNotAllowed):
            connection.mark_pending_setup("x")


class TestFail:
    def test_from_pending(self, db):
        connection = ConnectionFactory()

        connection.fail("Payment failed: no route")

        assert connection.status == ConnectionStatus.FAILED
        assert connection.setup_error == "Payment failed: no route"

    @pytest.mark.parametrize(
        "status",
        [ConnectionStatus.ACTIVE, ConnectionStatus.FAILED, ConnectionStatus.DISCONNECTED],
    )
    def test_only_from_pending(self, db, status):
        connection = ConnectionFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            connection.fail("x")


class TestBeginRetry:
    @pytest.mark.parametrize("status", [ConnectionStatus.FAILED, ConnectionStatus.PENDING_SETUP])
    def test_claims_one_retry(self, db, status):
        """Should return to PENDING and count the retry."""
        connection = ConnectionFactory(status=status, retry_count=2)

        connection.begin_retry()

        assert connection.status == ConnectionStatus.PENDING
        assert connection.retry_count == 3

    def test_limit_reached_leaves_status(self, db):
        """Should raise and keep FAILED when the budget is used up."""
        connection = ConnectionFactory(status=ConnectionStatus.FAILED, retry_count=5)

        with pytest.raises(RetryLimitExceededError) as exc_info:
            connection.begin_retry(max_retries=5)

        assert connection.status == ConnectionStatus.FAILED
        assert connection.retry_count == 5
        assert "Maximum retry attempts (5) exceeded" in exc_info.value.message

    @pytest.mark.parametrize("status", [ConnectionStatus.PENDING, ConnectionStatus.ACTIVE])
    def test_not_from_healthy_states(self, db, status):
        connection = ConnectionFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            connection.begin_retry()


class TestDisconnect:
    @pytest.mark.parametrize("status", [ConnectionStatus.ACTIVE, ConnectionStatus.FAILED])
    def test_allowed_sources(self, db, status):
        connection = ConnectionFactory(status=status)

        connection.disconnect("Disconnected by shop owner")

        assert connection.status == ConnectionStatus.DISCONNECTED
        assert connection.setup_error == "Disconnected by shop owner"

    def test_disconnected_is_terminal(self, db):
        """Should allow no transition out of DISCONNECTED."""
        connection = ConnectionFactory(status=ConnectionStatus.DISCONNECTED)

        for name, args in (
            ("activate", ()),
            ("fail", ("x",)),
            ("begin_retry", ()),
            ("disconnect", ("x",)),
            ("mark_pending_setup", ("x",)),
        ):
            with pytest.raises(TransitionNotAllowed):
                getattr(connection, name)(*args)

    def test_pending_cannot_disconnect(self, db):
        connection = ConnectionFactory()

        with pytest.raises(TransitionNotAllowed):
            connection.disconnect("x")

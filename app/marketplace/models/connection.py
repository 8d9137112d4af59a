"""
Connection model: the shop ↔ provider relationship and its lifecycle.

Status is a protected django-fsm field; every change goes through one of
the transition methods below. The version column supports optimistic
locking via marketplace.locks.check_version().

Usage:
    connection = Connection.objects.create(
        shop=shop,
        provider=provider,
        connection_type=ConnectionType.PAID_SUBSCRIPTION,
        subscription_amount=500,
    )
    connection.activate()
    connection.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from marketplace.exceptions import RetryLimitExceededError
from marketplace.state_machines import (
    RETRYABLE_STATUSES,
    ConnectionStatus,
    ConnectionType,
    SubscriptionInterval,
)

MAX_CONNECTION_RETRIES = 5


def retry_budget() -> int:
    """Manual retries allowed per connection (CONNECTION_MAX_RETRIES)."""
    return getattr(settings, "CONNECTION_MAX_RETRIES", MAX_CONNECTION_RETRIES)


def retry_limit_message(max_retries: int) -> str:
    return f"Maximum retry attempts ({max_retries}) exceeded. Please contact support."


class Connection(UUIDPrimaryKeyMixin, BaseModel):
    """
    A shop's attachment to an infrastructure provider.

    State Flow:
        PENDING -> ACTIVE | PENDING_SETUP | FAILED
        FAILED / PENDING_SETUP -> PENDING (retry, bounded by retry_count)
        ACTIVE / FAILED -> DISCONNECTED (terminal)

    Fields:
        connection_type: FREE_LISTING or PAID_SUBSCRIPTION
        status: Current FSM state
        setup_error: Last failure diagnostic, cleared on activation
        retry_count: Manual retries used (never above MAX_CONNECTION_RETRIES)
        subscription_amount: Sats per interval for paid connections
        encrypted_nwc_connection_string: Wallet secret, encrypted
        nwc_payment_id: Relay id of the last successful payment
        version: Optimistic locking version

    Note:
        The in-request provisioning loop keeps its own attempt counter and
        never writes it to retry_count.
    """

    shop = models.ForeignKey(
        "marketplace.Shop",
        on_delete=models.CASCADE,
        related_name="connections",
    )
    provider = models.ForeignKey(
        "marketplace.InfrastructureProvider",
        on_delete=models.CASCADE,
        related_name="connections",
    )

    connection_type = models.CharField(
        max_length=20,
        choices=ConnectionType.choices,
        default=ConnectionType.FREE_LISTING,
    )

    status = FSMField(
        default=ConnectionStatus.PENDING,
        choices=ConnectionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the connection (managed by FSM)",
    )

    setup_error = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    # ==========================================================================
    # Subscription
    # ==========================================================================

    subscription_amount = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Subscription price in sats",
    )
    subscription_interval = models.CharField(
        max_length=20,
        choices=SubscriptionInterval.choices,
        null=True,
        blank=True,
    )
    encrypted_nwc_connection_string = models.TextField(null=True, blank=True)
    nwc_payment_id = models.CharField(max_length=255, null=True, blank=True)

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Connection"
        verbose_name_plural = "Connections"
        indexes = [
            models.Index(fields=["provider", "status"], name="connection_provider_status_idx"),
            models.Index(fields=["status", "retry_count"], name="connection_status_retry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(retry_count__lte=MAX_CONNECTION_RETRIES),
                name="connection_retry_count_bounded",
            ),
        ]

    def __str__(self) -> str:
        return f"Connection({self.id}, {self.status})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        Updates bump the version in SQL and reload it, so the instance
        always holds the stored value afterwards.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Derived state
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        return self.connection_type == ConnectionType.PAID_SUBSCRIPTION

    @property
    def remaining_retries(self) -> int:
        return max(0, retry_budget() - self.retry_count)

    @property
    def can_retry(self) -> bool:
        return self.status in RETRYABLE_STATUSES and self.retry_count < retry_budget()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[ConnectionStatus.PENDING, ConnectionStatus.ACTIVE],
        target=ConnectionStatus.ACTIVE,
    )
    def activate(self):
        """
        Mark the connection live.

        Transition: PENDING/ACTIVE -> ACTIVE
        """
        self.setup_error = None

    @transition(
        field=status,
        source=[ConnectionStatus.PENDING, ConnectionStatus.ACTIVE],
        target=ConnectionStatus.PENDING_SETUP,
    )
    def mark_pending_setup(self, error: str):
        """
        Provisioning ran out of in-request attempts.

        Transition: PENDING/ACTIVE -> PENDING_SETUP

        ACTIVE is a valid source because a paid connection is activated by
        its payment before provisioning runs.
        """
        self.setup_error = error

    @transition(
        field=status,
        source=ConnectionStatus.PENDING,
        target=ConnectionStatus.FAILED,
    )
    def fail(self, error: str):
        """Transition: PENDING -> FAILED"""
        self.setup_error = error

    @transition(
        field=status,
        source=list(RETRYABLE_STATUSES),
        target=ConnectionStatus.PENDING,
    )
    def begin_retry(self, max_retries: int = MAX_CONNECTION_RETRIES):
        """
        Claim one retry.

        Transition: FAILED/PENDING_SETUP -> PENDING

        Raises:
            RetryLimitExceededError: If the budget is used up. The status
                is left unchanged.
        """
        if self.retry_count >= max_retries:
            raise RetryLimitExceededError(
                retry_limit_message(max_retries),
                details={"retry_count": self.retry_count, "max_retries": max_retries},
            )
        self.retry_count += 1

    @transition(
        field=status,
        source=[ConnectionStatus.ACTIVE, ConnectionStatus.FAILED],
        target=ConnectionStatus.DISCONNECTED,
    )
    def disconnect(self, reason: str):
        """Transition: ACTIVE/FAILED -> DISCONNECTED (terminal)"""
        self.setup_error = reason

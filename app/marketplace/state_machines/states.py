"""
State enums for marketplace models.

These are Django TextChoices for database storage and admin integration.
Connection.status is driven by django-fsm transitions.

State Machines Overview:

Connection States:
    PENDING → ACTIVE (payment settled and/or provisioning succeeded)
    PENDING → PENDING_SETUP (provisioning exhausted its in-request attempts)
    PENDING → FAILED (payment failed, configuration missing, retry failed)
    FAILED / PENDING_SETUP → PENDING (manual or scheduled retry)
    ACTIVE / FAILED → DISCONNECTED (provider webhook or explicit disconnect)

DISCONNECTED is terminal.
"""

from django.db import models


class ConnectionStatus(models.TextChoices):
    """
    States for the Connection lifecycle.

    Terminal states: DISCONNECTED
    Retryable states: FAILED, PENDING_SETUP
    """

    PENDING = "PENDING", "Pending"
    PENDING_SETUP = "PENDING_SETUP", "Pending Setup"
    ACTIVE = "ACTIVE", "Active"
    FAILED = "FAILED", "Failed"
    DISCONNECTED = "DISCONNECTED", "Disconnected"


RETRYABLE_STATUSES = (ConnectionStatus.FAILED, ConnectionStatus.PENDING_SETUP)


class ConnectionType(models.TextChoices):
    """How a shop is attached to a provider."""

    FREE_LISTING = "FREE_LISTING", "Free Listing"
    PAID_SUBSCRIPTION = "PAID_SUBSCRIPTION", "Paid Subscription"


class ServiceType(models.TextChoices):
    """
    Kind of infrastructure a provider runs.

    Only BTCPAY_SERVER providers with a host URL provision accounts.
    """

    BTCPAY_SERVER = "BTCPAY_SERVER", "BTCPay Server"
    BLFS = "BLFS", "BLFS"
    OTHER = "OTHER", "Other"


class SubscriptionInterval(models.TextChoices):
    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY = "yearly", "Yearly"


class PaymentHistoryStatus:
    """
    Status tags written to PaymentHistory.

    The column is free text: payment outcomes, webhook markers and audit
    event names all land here.
    """

    SUCCESS = "success"
    FAILED = "failed"
    STORE_MODIFIED_WEBHOOK = "store_modified_webhook"
    USER_REMOVED_WEBHOOK = "user_removed_webhook"
    STORE_DELETED_WEBHOOK = "store_deleted_webhook"


class PaymentMethod:
    NWC = "NWC"
    BTCPAY_WEBHOOK = "btcpay_webhook"
    AUDIT_LOG = "audit_log"

# Generated manually - Initial marketplace schema

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("website", models.URLField(blank=True, max_length=500, null=True)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                (
                    "lightning_address",
                    models.CharField(
                        blank=True,
                        help_text="Shop's own lightning address (user@domain)",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("is_public", models.BooleanField(default=True)),
                ("accepts_bitcoin", models.BooleanField(default=True)),
                (
                    "btcpay_store_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Store id on the provider's BTCPay Server (webhook lookup key)",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("btcpay_user_id", models.CharField(blank=True, max_length=255, null=True)),
                ("btcpay_username", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shops",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Shop",
                "verbose_name_plural": "Shops",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["owner", "created_at"], name="shop_owner_created_idx")],
            },
        ),
        migrations.CreateModel(
            name="InfrastructureProvider",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "service_type",
                    models.CharField(
                        choices=[
                            ("BTCPAY_SERVER", "BTCPay Server"),
                            ("BLFS", "BLFS"),
                            ("OTHER", "Other"),
                        ],
                        default="OTHER",
                        max_length=20,
                    ),
                ),
                ("host_url", models.URLField(blank=True, max_length=500, null=True)),
                ("encrypted_api_key", models.TextField(blank=True, null=True)),
                ("encrypted_webhook_secret", models.TextField(blank=True, null=True)),
                (
                    "lightning_address",
                    models.CharField(
                        blank=True,
                        help_text="Lightning address receiving subscription payments (user@domain)",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                (
                    "total_slots",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Maximum concurrent shops; empty for unlimited",
                        null=True,
                    ),
                ),
                ("onboarding_welcome_text", models.TextField(blank=True, default="")),
                (
                    "onboarding_setup_steps",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text='List of {"text": ..., "order": n}',
                    ),
                ),
                ("onboarding_external_links", models.JSONField(blank=True, default=list)),
                ("onboarding_contact_info", models.TextField(blank=True, default="")),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="infrastructure_providers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Infrastructure Provider",
                "verbose_name_plural": "Infrastructure Providers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Connection",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "connection_type",
                    models.CharField(
                        choices=[
                            ("FREE_LISTING", "Free Listing"),
                            ("PAID_SUBSCRIPTION", "Paid Subscription"),
                        ],
                        default="FREE_LISTING",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PENDING_SETUP", "Pending Setup"),
                            ("ACTIVE", "Active"),
                            ("FAILED", "Failed"),
                            ("DISCONNECTED", "Disconnected"),
                        ],
                        db_index=True,
                        default="PENDING",
                        help_text="Current state of the connection (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("setup_error", models.TextField(blank=True, null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
                (
                    "subscription_amount",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Subscription price in sats",
                        null=True,
                    ),
                ),
                (
                    "subscription_interval",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("yearly", "Yearly"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("encrypted_nwc_connection_string", models.TextField(blank=True, null=True)),
                ("nwc_payment_id", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="connections",
                        to="marketplace.infrastructureprovider",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="connections",
                        to="marketplace.shop",
                    ),
                ),
            ],
            options={
                "verbose_name": "Connection",
                "verbose_name_plural": "Connections",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["provider", "status"], name="connection_provider_status_idx"),
                    models.Index(fields=["status", "retry_count"], name="connection_status_retry_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(retry_count__lte=5),
                        name="connection_retry_count_bounded",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentHistory",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("amount", models.PositiveBigIntegerField(default=0, help_text="Amount in sats")),
                ("status", models.CharField(db_index=True, max_length=64)),
                ("payment_method", models.CharField(max_length=32)),
                ("wallet_provider", models.CharField(blank=True, max_length=100, null=True)),
                ("preimage", models.CharField(blank=True, max_length=128, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                (
                    "connection",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_history",
                        to="marketplace.connection",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment History",
                "verbose_name_plural": "Payment History",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["connection", "created_at"], name="payhist_conn_created_idx"),
                ],
            },
        ),
    ]

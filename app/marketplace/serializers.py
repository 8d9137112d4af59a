"""
Serializers for the marketplace API.

Serializers:
    ShopCreateSerializer: Validates shop creation requests
    ShopSerializer: Shop details
    ConnectionSerializer: Connection status for dashboards
    PaymentResultSerializer: Outcome of a subscription payment
    ProvisioningCredentialsSerializer: One-time provider account details
    RetryOutcomeSerializer: Outcome of a manual retry
    DisconnectSerializer: Validates disconnect requests
    OnboardingSerializer: Provider onboarding content for a shop

Usage:
    serializer = ShopCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    params = serializer.to_params()
"""

from __future__ import annotations

from rest_framework import serializers

from marketplace.models import Connection, Shop
from marketplace.services import ShopParams
from marketplace.state_machines import SubscriptionInterval


class ShopCreateSerializer(serializers.Serializer):
    """
    Shop creation request.

    provider_id connects the shop immediately; adding subscription_amount
    makes it a paid subscription, which needs nwc_connection_string.
    """

    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    website = serializers.URLField(required=False, allow_null=True, allow_blank=True, default=None)
    contact_email = serializers.EmailField(required=False, allow_null=True, allow_blank=True, default=None)
    lightning_address = serializers.CharField(
        max_length=255,
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
    )
    is_public = serializers.BooleanField(required=False, default=True)
    accepts_bitcoin = serializers.BooleanField(required=False, default=True)
    provider_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    subscription_amount = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        default=None,
    )
    subscription_interval = serializers.ChoiceField(
        choices=SubscriptionInterval.choices,
        required=False,
        allow_null=True,
        default=None,
    )
    nwc_connection_string = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
        write_only=True,
        trim_whitespace=True,
    )

    def to_params(self) -> ShopParams:
        data = self.validated_data
        return ShopParams(
            name=data["name"],
            description=data["description"],
            website=data["website"] or None,
            contact_email=data["contact_email"] or None,
            lightning_address=data["lightning_address"] or None,
            is_public=data["is_public"],
            accepts_bitcoin=data["accepts_bitcoin"],
            provider_id=data["provider_id"],
            subscription_amount=data["subscription_amount"],
            subscription_interval=data["subscription_interval"],
            nwc_connection_string=data["nwc_connection_string"] or None,
        )


class ShopSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shop
        fields = [
            "id",
            "name",
            "description",
            "website",
            "contact_email",
            "lightning_address",
            "is_public",
            "accepts_bitcoin",
            "btcpay_store_id",
            "btcpay_username",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ConnectionSerializer(serializers.ModelSerializer):
    """
    Connection status as shown on the shop dashboard.

    The wallet secret is never serialized.
    """

    shop_id = serializers.UUIDField(read_only=True)
    provider_id = serializers.UUIDField(read_only=True)
    provider_name = serializers.CharField(source="provider.name", read_only=True)
    remaining_retries = serializers.IntegerField(read_only=True)
    can_retry = serializers.BooleanField(read_only=True)

    class Meta:
        model = Connection
        fields = [
            "id",
            "shop_id",
            "provider_id",
            "provider_name",
            "connection_type",
            "status",
            "setup_error",
            "retry_count",
            "remaining_retries",
            "can_retry",
            "subscription_amount",
            "subscription_interval",
            "nwc_payment_id",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    payment_id = serializers.CharField(allow_null=True)
    preimage = serializers.CharField(allow_null=True)
    amount = serializers.IntegerField(allow_null=True)
    recipient = serializers.CharField(allow_null=True)
    error = serializers.CharField(allow_null=True)


class ProvisioningCredentialsSerializer(serializers.Serializer):
    store_id = serializers.CharField()
    user_id = serializers.CharField()
    username = serializers.CharField()
    temp_password = serializers.CharField()


class ShopCreationResponseSerializer(serializers.Serializer):
    shop = ShopSerializer()
    connection = ConnectionSerializer(allow_null=True)
    payment = PaymentResultSerializer(allow_null=True)
    credentials = ProvisioningCredentialsSerializer(allow_null=True)


class RetryOutcomeSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    status = serializers.CharField()
    retry_count = serializers.IntegerField()
    can_retry_again = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)
    credentials = ProvisioningCredentialsSerializer(allow_null=True)


class DisconnectSerializer(serializers.Serializer):
    reason = serializers.CharField(
        required=False,
        max_length=500,
        default="Disconnected by shop owner",
    )


class ProviderHealthSerializer(serializers.Serializer):
    provider_id = serializers.UUIDField()
    healthy = serializers.BooleanField()


class OnboardingSerializer(serializers.Serializer):
    """
    Onboarding page content for a shop joining a provider.

    setup_steps are ordered by their "order" key.
    """

    provider_id = serializers.UUIDField()
    provider_name = serializers.CharField()
    host_url = serializers.CharField(allow_null=True)
    welcome_text = serializers.CharField(allow_null=True, allow_blank=True)
    setup_steps = serializers.ListField(child=serializers.DictField())
    external_links = serializers.JSONField()
    contact_info = serializers.CharField(allow_blank=True)
    shop_id = serializers.UUIDField()
    shop_name = serializers.CharField()
    btcpay_username = serializers.CharField(allow_null=True)
    connection_status = serializers.CharField(allow_null=True)

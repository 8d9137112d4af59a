"""
Marketplace admin configuration.

Connection status is managed by the lifecycle manager, so it is read-only
here. PaymentHistory rows are append-only and cannot be edited or
deleted from the admin.
"""

from django.contrib import admin

from marketplace.models import Connection, InfrastructureProvider, PaymentHistory, Shop


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "owner", "is_public", "btcpay_store_id", "created_at"]
    list_filter = ["is_public", "accepts_bitcoin"]
    search_fields = ["id", "name", "owner__email", "btcpay_store_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(InfrastructureProvider)
class InfrastructureProviderAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "service_type", "owner", "host_url", "total_slots", "created_at"]
    list_filter = ["service_type"]
    search_fields = ["id", "name", "owner__email", "host_url"]
    readonly_fields = ["id", "created_at", "updated_at"]
    exclude = ["encrypted_api_key", "encrypted_webhook_secret"]
    ordering = ["-created_at"]


class PaymentHistoryInline(admin.TabularInline):
    model = PaymentHistory
    extra = 0
    fields = ["created_at", "status", "payment_method", "amount", "error_message"]
    readonly_fields = fields
    can_delete = False
    ordering = ["-created_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Connection)
class ConnectionAdmin(admin.ModelAdmin):
    """
    State changes should be made through the lifecycle manager, not admin.
    """

    list_display = [
        "id",
        "shop",
        "provider",
        "connection_type",
        "status",
        "retry_count",
        "created_at",
    ]
    list_filter = ["status", "connection_type"]
    search_fields = ["id", "shop__name", "provider__name"]
    readonly_fields = [
        "id",
        "status",
        "retry_count",
        "setup_error",
        "nwc_payment_id",
        "version",
        "created_at",
        "updated_at",
    ]
    exclude = ["encrypted_nwc_connection_string"]
    inlines = [PaymentHistoryInline]
    ordering = ["-created_at"]


@admin.register(PaymentHistory)
class PaymentHistoryAdmin(admin.ModelAdmin):
    list_display = ["id", "connection", "status", "payment_method", "amount", "created_at"]
    list_filter = ["payment_method", "status"]
    search_fields = ["id", "connection__id", "status"]
    ordering = ["-created_at"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

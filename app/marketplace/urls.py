"""
URL configuration for the marketplace app.

All routes are prefixed with /api/v1/marketplace/ when included in the main URLconf.
"""

from django.urls import path

from marketplace import views
from marketplace.webhooks.views import btcpay_webhook

app_name = "marketplace"

urlpatterns = [
    path("shops/", views.ShopListCreateView.as_view(), name="shop-list"),
    path(
        "connections/<uuid:connection_id>/",
        views.ConnectionDetailView.as_view(),
        name="connection-detail",
    ),
    path(
        "connections/<uuid:connection_id>/retry/",
        views.ConnectionRetryView.as_view(),
        name="connection-retry",
    ),
    path(
        "connections/<uuid:connection_id>/disconnect/",
        views.ConnectionDisconnectView.as_view(),
        name="connection-disconnect",
    ),
    path(
        "providers/<uuid:provider_id>/health/",
        views.ProviderHealthView.as_view(),
        name="provider-health",
    ),
    path(
        "onboarding/<uuid:provider_id>/<uuid:shop_id>/",
        views.OnboardingView.as_view(),
        name="onboarding",
    ),
    # Webhook endpoints
    path("webhooks/btcpay/", btcpay_webhook, name="btcpay-webhook"),
]

"""
DRF views for the marketplace app.

Endpoints:
    GET  /api/v1/marketplace/shops/ - List the user's shops
    POST /api/v1/marketplace/shops/ - Create a shop, optionally connected
    GET  /api/v1/marketplace/connections/{id}/ - Connection status
    POST /api/v1/marketplace/connections/{id}/retry/ - Manual retry
    POST /api/v1/marketplace/connections/{id}/disconnect/ - Disconnect
    GET  /api/v1/marketplace/providers/{id}/health/ - Provider server health
    GET  /api/v1/marketplace/onboarding/{provider_id}/{shop_id}/ - Onboarding content

The BTCPay webhook endpoint lives in marketplace.webhooks.views.

Security:
    - All endpoints require authentication
    - Shops and connections are scoped to request.user
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.throttling import ApiThrottle, GreenfieldThrottle, PaymentThrottle
from marketplace.models import Connection, InfrastructureProvider, Shop
from marketplace.serializers import (
    ConnectionSerializer,
    DisconnectSerializer,
    OnboardingSerializer,
    ProviderHealthSerializer,
    RetryOutcomeSerializer,
    ShopCreateSerializer,
    ShopCreationResponseSerializer,
    ShopSerializer,
)
from marketplace.services import ConnectionLifecycleManager

logger = logging.getLogger(__name__)

# Maps ServiceResult error codes to HTTP status
ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "CONNECTION_NOT_RETRYABLE": status.HTTP_400_BAD_REQUEST,
    "RETRY_LIMIT_EXCEEDED": status.HTTP_400_BAD_REQUEST,
    "CONNECTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROVIDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROVIDER_FULL": status.HTTP_409_CONFLICT,
    "STALE_RECORD": status.HTTP_409_CONFLICT,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "RETRY_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def failure_response(result) -> Response:
    http_status = ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    return Response(result.to_response(), status=http_status)


class LifecycleManagerMixin:
    """Builds the lifecycle manager from settings for each request."""

    def get_manager(self) -> ConnectionLifecycleManager:
        return ConnectionLifecycleManager.from_settings()


class ShopListCreateView(LifecycleManagerMixin, APIView):
    """
    List or create the user's shops.

    POST with provider_id opens a connection right away. The response is
    201 even when payment or provisioning failed; the connection status
    and setup_error say what happened. Provider credentials are returned
    only in this response.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle]

    def get_throttles(self):
        throttles = super().get_throttles()
        if self.request.method == "POST" and self.request.data.get("subscription_amount"):
            throttles.append(PaymentThrottle())
        return throttles

    @extend_schema(
        operation_id="list_shops",
        summary="List my shops",
        responses={200: ShopSerializer(many=True)},
        tags=["Marketplace - Shops"],
    )
    def get(self, request):
        shops = Shop.objects.filter(owner=request.user)
        return Response(ShopSerializer(shops, many=True).data)

    @extend_schema(
        operation_id="create_shop",
        summary="Create a shop",
        request=ShopCreateSerializer,
        responses={
            201: ShopCreationResponseSerializer,
            400: OpenApiResponse(description="Invalid request"),
            404: OpenApiResponse(description="Provider not found"),
        },
        tags=["Marketplace - Shops"],
    )
    def post(self, request):
        serializer = ShopCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_manager().create_shop(request.user, serializer.to_params())
        if not result.success:
            return failure_response(result)

        return Response(
            ShopCreationResponseSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class ConnectionDetailView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle]

    @extend_schema(
        operation_id="get_connection",
        summary="Get connection status",
        responses={200: ConnectionSerializer, 404: OpenApiResponse(description="Not found")},
        tags=["Marketplace - Connections"],
    )
    def get(self, request, connection_id):
        connection = (
            Connection.objects.select_related("provider")
            .filter(pk=connection_id, shop__owner=request.user)
            .first()
        )
        if connection is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(ConnectionSerializer(connection).data)


class ConnectionRetryView(LifecycleManagerMixin, APIView):
    """
    Retry a FAILED or PENDING_SETUP connection.

    A retry that ran but did not reach ACTIVE answers 500 with the
    outcome, including can_retry_again.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle, PaymentThrottle]

    @extend_schema(
        operation_id="retry_connection",
        summary="Retry a failed connection",
        request=None,
        responses={
            200: RetryOutcomeSerializer,
            400: OpenApiResponse(description="Not retryable or retry limit reached"),
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Connection changed concurrently"),
            500: RetryOutcomeSerializer,
        },
        tags=["Marketplace - Connections"],
    )
    def post(self, request, connection_id):
        result = self.get_manager().retry(connection_id, actor=request.user)

        if result.success:
            return Response(
                {
                    "message": "Connection retry successful",
                    **RetryOutcomeSerializer(result.data).data,
                }
            )

        if result.data is not None:
            return Response(
                RetryOutcomeSerializer(result.data).data,
                status=ERROR_STATUS[result.error_code],
            )
        return failure_response(result)


class ConnectionDisconnectView(LifecycleManagerMixin, APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle]

    @extend_schema(
        operation_id="disconnect_connection",
        summary="Disconnect a connection",
        request=DisconnectSerializer,
        responses={
            200: ConnectionSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Not allowed in the current state"),
        },
        tags=["Marketplace - Connections"],
    )
    def post(self, request, connection_id):
        serializer = DisconnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_manager().disconnect(
            connection_id,
            reason=serializer.validated_data["reason"],
            actor=request.user,
        )
        if not result.success:
            return failure_response(result)
        return Response(ConnectionSerializer(result.data).data)


class ProviderHealthView(LifecycleManagerMixin, APIView):
    """Check the provider's BTCPay Server. Only the provider's owner may ask."""

    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle, GreenfieldThrottle]

    @extend_schema(
        operation_id="provider_health",
        summary="Check provider server health",
        responses={
            200: ProviderHealthSerializer,
            404: OpenApiResponse(description="Not found"),
        },
        tags=["Marketplace - Providers"],
    )
    def get(self, request, provider_id):
        provider = InfrastructureProvider.objects.filter(pk=provider_id, owner=request.user).first()
        if provider is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)

        try:
            healthy = self.get_manager().provider_health(provider)
        except BaseApplicationError as e:
            logger.warning(
                "Provider health check not possible",
                extra={"provider_id": str(provider.id), "error_code": e.error_code},
            )
            return Response(e.to_dict(), status=e.http_status)

        return Response(ProviderHealthSerializer({"provider_id": provider.id, "healthy": healthy}).data)


class OnboardingView(APIView):
    """
    Onboarding content a provider shows to a shop that just connected.

    Includes the provisioned username so the owner can log in to the
    provider's server; the temporary password is never repeated here.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ApiThrottle]

    @extend_schema(
        operation_id="get_onboarding",
        summary="Get provider onboarding for a shop",
        responses={200: OnboardingSerializer, 404: OpenApiResponse(description="Not found")},
        tags=["Marketplace - Providers"],
    )
    def get(self, request, provider_id, shop_id):
        shop = Shop.objects.filter(pk=shop_id, owner=request.user).first()
        provider = InfrastructureProvider.objects.filter(pk=provider_id).first()
        if shop is None or provider is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)

        connection = (
            Connection.objects.filter(shop=shop, provider=provider).order_by("-created_at").first()
        )
        data = {
            "provider_id": provider.id,
            "provider_name": provider.name,
            "host_url": provider.host_url,
            "welcome_text": provider.onboarding_welcome_text,
            "setup_steps": provider.sorted_setup_steps(),
            "external_links": provider.onboarding_external_links,
            "contact_info": provider.onboarding_contact_info,
            "shop_id": shop.id,
            "shop_name": shop.name,
            "btcpay_username": shop.btcpay_username,
            "connection_status": connection.status if connection else None,
        }
        return Response(OnboardingSerializer(data).data)

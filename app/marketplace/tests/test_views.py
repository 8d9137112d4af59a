"""
Tests for the marketplace API views.

The lifecycle manager is swapped for the test-double-backed one from
conftest, so no request leaves the process.
"""

import uuid

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from marketplace.models import Connection, Shop
from marketplace.state_machines import ConnectionStatus
from marketplace.tests.factories import TEST_NWC, BTCPayProviderFactory, ConnectionFactory, ShopFactory
from marketplace.views import LifecycleManagerMixin


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture(autouse=True)
def use_test_manager(monkeypatch, manager):
    monkeypatch.setattr(LifecycleManagerMixin, "get_manager", lambda self: manager)


def reload(connection):
    return Connection.objects.get(pk=connection.pk)


@pytest.mark.django_db
class TestAuthentication:
    @pytest.mark.parametrize(
        "name, args",
        [("marketplace:shop-list", []), ("marketplace:connection-detail", [uuid.uuid4()])],
    )
    def test_requires_authentication(self, name, args):
        response = APIClient().get(reverse(name, args=args))

        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


@pytest.mark.django_db
class TestShopListCreateView:
    """Tests for GET/POST /api/v1/marketplace/shops/."""

    def test_lists_only_own_shops(self, api_client, shop, other_user):
        ShopFactory(owner=other_user)

        response = api_client.get(reverse("marketplace:shop-list"))

        assert response.status_code == status.HTTP_200_OK
        assert [item["id"] for item in response.data] == [str(shop.id)]

    def test_create_without_provider(self, api_client, user):
        response = api_client.post(reverse("marketplace:shop-list"), {"name": "Corner Coffee"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["shop"]["name"] == "Corner Coffee"
        assert response.data["connection"] is None
        assert Shop.objects.filter(owner=user).count() == 1

    def test_create_free_listing(self, api_client, provider):
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {"name": "Corner Coffee", "provider_id": str(provider.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["connection"]["status"] == ConnectionStatus.ACTIVE
        assert response.data["connection"]["provider_name"] == provider.name
        assert response.data["credentials"] is None

    def test_create_with_provisioning_returns_credentials(self, api_client, btcpay_provider):
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {"name": "Corner Coffee", "provider_id": str(btcpay_provider.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        credentials = response.data["credentials"]
        assert credentials["store_id"] == "store_2"
        assert credentials["username"].startswith("cornercoffee_")
        assert len(credentials["temp_password"]) == 16

    def test_create_paid_subscription(self, api_client, provider):
        """Should never echo the wallet secret."""
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {
                "name": "Corner Coffee",
                "provider_id": str(provider.id),
                "subscription_amount": 1000,
                "subscription_interval": "monthly",
                "nwc_connection_string": TEST_NWC,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["payment"]["success"] is True
        assert response.data["connection"]["nwc_payment_id"] == "nwc_test_payment"
        assert TEST_NWC not in response.content.decode()

    def test_paid_without_wallet(self, api_client, provider):
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {"name": "Corner Coffee", "provider_id": str(provider.id), "subscription_amount": 1000},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert "nwc_connection_string" in response.data["errors"]

    def test_unknown_provider(self, api_client):
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {"name": "Corner Coffee", "provider_id": str(uuid.uuid4())},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PROVIDER_NOT_FOUND"

    def test_invalid_body(self, api_client):
        response = api_client.post(
            reverse("marketplace:shop-list"),
            {"name": "", "subscription_amount": 0},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "name" in response.data
        assert "subscription_amount" in response.data


@pytest.mark.django_db
class TestConnectionDetailView:
    def test_own_connection(self, api_client, failed_paid_connection):
        response = api_client.get(reverse("marketplace:connection-detail", args=[failed_paid_connection.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == ConnectionStatus.FAILED
        assert response.data["remaining_retries"] == 5
        assert response.data["can_retry"] is True
        assert "encrypted_nwc_connection_string" not in response.data

    def test_other_users_connection(self, api_client, other_user):
        connection = ConnectionFactory(shop=ShopFactory(owner=other_user))

        response = api_client.get(reverse("marketplace:connection-detail", args=[connection.id]))

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestConnectionRetryView:
    def url(self, connection_id):
        return reverse("marketplace:connection-retry", args=[connection_id])

    def test_success(self, api_client, failed_paid_connection):
        response = api_client.post(self.url(failed_paid_connection.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["message"] == "Connection retry successful"
        assert response.data["status"] == ConnectionStatus.ACTIVE
        assert response.data["retry_count"] == 1
        assert response.data["can_retry_again"] is True

    def test_failed_attempt_returns_outcome(self, api_client, failed_connection):
        """Should answer 500 with the outcome of the attempt."""
        response = api_client.post(self.url(failed_connection.id))

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data["success"] is False
        assert response.data["status"] == ConnectionStatus.FAILED
        assert response.data["retry_count"] == 1
        assert response.data["error"]

    def test_not_retryable(self, api_client, active_connection):
        response = api_client.post(self.url(active_connection.id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CONNECTION_NOT_RETRYABLE"

    def test_limit_reached(self, api_client, shop, provider):
        connection = ConnectionFactory(shop=shop, provider=provider, status=ConnectionStatus.FAILED, retry_count=5)

        response = api_client.post(self.url(connection.id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"] == "Maximum retry attempts (5) exceeded. Please contact support."

    def test_not_found(self, api_client):
        response = api_client.post(self.url(uuid.uuid4()))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_throttled_by_payment_policy(self, api_client, failed_connection, settings):
        settings.RATE_LIMITS = {
            **settings.RATE_LIMITS,
            "payment": {"max_requests": 1, "window_seconds": 60},
        }

        api_client.post(self.url(failed_connection.id))
        response = api_client.post(self.url(failed_connection.id))

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert reload(failed_connection).retry_count == 1


@pytest.mark.django_db
class TestConnectionDisconnectView:
    def url(self, connection_id):
        return reverse("marketplace:connection-disconnect", args=[connection_id])

    def test_disconnect(self, api_client, active_connection):
        response = api_client.post(self.url(active_connection.id), {"reason": "Closing the shop"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == ConnectionStatus.DISCONNECTED
        assert response.data["setup_error"] == "Closing the shop"

    def test_default_reason(self, api_client, active_connection):
        api_client.post(self.url(active_connection.id))

        assert reload(active_connection).setup_error == "Disconnected by shop owner"

    def test_invalid_state(self, api_client, pending_connection):
        response = api_client.post(self.url(pending_connection.id))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_STATE_TRANSITION"


@pytest.mark.django_db
class TestProviderHealthView:
    def url(self, provider_id):
        return reverse("marketplace:provider-health", args=[provider_id])

    def test_healthy(self, api_client, user):
        provider = BTCPayProviderFactory(owner=user)

        response = api_client.get(self.url(provider.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"provider_id": str(provider.id), "healthy": True}

    def test_unhealthy(self, api_client, user, greenfield):
        provider = BTCPayProviderFactory(owner=user)
        greenfield.fail_next("GET /api/v1/health", status_code=502)

        response = api_client.get(self.url(provider.id))

        assert response.data["healthy"] is False

    def test_incomplete_configuration(self, api_client, user):
        provider = BTCPayProviderFactory(owner=user, encrypted_api_key=None)

        response = api_client.get(self.url(provider.id))

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data["error_code"] == "CONFIGURATION_ERROR"

    def test_other_owner(self, api_client, btcpay_provider):
        response = api_client.get(self.url(btcpay_provider.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestOnboardingView:
    def test_content(self, api_client, user, btcpay_provider):
        shop = ShopFactory(owner=user, btcpay_username="cornercoffee_1a2b3c4d")
        ConnectionFactory(shop=shop, provider=btcpay_provider, status=ConnectionStatus.ACTIVE)

        response = api_client.get(reverse("marketplace:onboarding", args=[btcpay_provider.id, shop.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["welcome_text"] == "Welcome aboard"
        assert [step["order"] for step in response.data["setup_steps"]] == [1, 2]
        assert response.data["btcpay_username"] == "cornercoffee_1a2b3c4d"
        assert response.data["connection_status"] == ConnectionStatus.ACTIVE
        assert "temp_password" not in response.data

    def test_without_connection(self, api_client, shop, btcpay_provider):
        response = api_client.get(reverse("marketplace:onboarding", args=[btcpay_provider.id, shop.id]))

        assert response.data["connection_status"] is None

    def test_other_users_shop(self, api_client, other_user, btcpay_provider):
        shop = ShopFactory(owner=other_user)

        response = api_client.get(reverse("marketplace:onboarding", args=[btcpay_provider.id, shop.id]))

        assert response.status_code == status.HTTP_404_NOT_FOUND

"""
Tests for the BTCPay Greenfield client.

Tests cover:
- Request construction (auth header, base URL, payloads)
- Error translation to GreenfieldAPIError
- The provision_shop composite operation
- Client factory selection
"""

import json

import httpx
import pytest

from marketplace.adapters import (
    DryRunGreenfieldClient,
    GreenfieldClient,
    StoreRole,
    create_greenfield_client,
)
from marketplace.exceptions import ConfigurationError, GreenfieldAPIError


def body(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestRequests:
    """Tests for request construction."""

    def test_sends_token_auth_header(self, client, greenfield):
        """Should authenticate with the Greenfield token scheme."""
        client.create_user("owner@example.com", "pw")

        request = greenfield.requests[0]
        assert request.headers["Authorization"] == "token secret-api-key"
        assert request.headers["Content-Type"] == "application/json"

    def test_strips_trailing_slash_from_host(self, greenfield):
        client = greenfield.client(host_url="https://btcpay.example.com/")

        client.health_check()

        assert client.base_url == "https://btcpay.example.com"
        assert str(greenfield.requests[0].url) == "https://btcpay.example.com/api/v1/health"

    def test_create_user_payload(self, client, greenfield):
        """Should create a non-admin user and parse the response."""
        user = client.create_user("owner@example.com", "Sup3r-secret")

        assert body(greenfield.requests[0]) == {
            "email": "owner@example.com",
            "password": "Sup3r-secret",
            "isAdministrator": False,
        }
        assert user.id.startswith("user_")
        assert user.email == "owner@example.com"
        assert user.approved is True

    def test_create_store_payload(self, client, greenfield):
        """Should default the currency to BTC and include website only when given."""
        client.create_store("Corner Coffee")
        client.create_store("Corner Coffee", website="https://corner.example.com")

        assert body(greenfield.requests[0]) == {"name": "Corner Coffee", "defaultCurrency": "BTC"}
        assert body(greenfield.requests[1])["website"] == "https://corner.example.com"

    def test_add_store_member_payload(self, client, greenfield):
        client.add_store_member("store_1", "user_1", StoreRole.MANAGER)

        request = greenfield.requests[0]
        assert request.url.path == "/api/v1/stores/store_1/users"
        assert body(request) == {"userId": "user_1", "role": "Manager"}

    def test_add_store_member_rejects_unknown_role(self, client, greenfield):
        """Should raise ValueError before sending anything."""
        with pytest.raises(ValueError):
            client.add_store_member("store_1", "user_1", "Emperor")

        assert greenfield.requests == []

    def test_list_store_members(self, responder):
        transport = responder(
            {
                ("GET", "/api/v1/stores/store_1/users"): httpx.Response(
                    200,
                    json=[{"userId": "u1", "role": "Owner"}, {"userId": "u2", "role": "Guest"}],
                )
            }
        )
        client = GreenfieldClient("https://btcpay.example.com", "key", transport=transport)

        members = client.list_store_members("store_1")

        assert [(m.user_id, m.role) for m in members] == [("u1", "Owner"), ("u2", "Guest")]

    def test_create_webhook_payload(self, responder):
        transport = responder(
            {
                ("POST", "/api/v1/stores/store_1/webhooks"): httpx.Response(
                    200,
                    json={"id": "wh_1", "url": "https://shop.example.com/hook"},
                )
            }
        )
        client = GreenfieldClient("https://btcpay.example.com", "key", transport=transport)

        webhook = client.create_webhook(
            "store_1",
            "https://shop.example.com/hook",
            ["StoreDeleted"],
            secret="whsec",
        )

        payload = body(transport.requests[0])
        assert payload["authorizedEvents"] == {"everything": False, "specificEvents": ["StoreDeleted"]}
        assert payload["secret"] == "whsec"
        assert webhook.id == "wh_1"
        assert webhook.events == ["StoreDeleted"]

    def test_empty_response_returns_none_for_delete(self, responder):
        """Should accept 204 No Content."""
        transport = responder({("DELETE", "/api/v1/stores/store_1"): httpx.Response(204)})
        client = GreenfieldClient("https://btcpay.example.com", "key", transport=transport)

        assert client.delete_store("store_1") is None


class TestErrors:
    """Tests for error translation."""

    def test_non_2xx_raises_with_status_and_body(self, client, greenfield):
        greenfield.fail_next("POST /api/v1/users", status_code=422)

        with pytest.raises(GreenfieldAPIError) as exc_info:
            client.create_user("owner@example.com", "pw")

        error = exc_info.value
        assert error.message == "BTCPay API error: 422 - upstream exploded"
        assert error.status_code == 422
        assert error.response_text == "upstream exploded"
        assert error.details["status_code"] == 422
        assert error.is_retryable

    def test_transport_error_raises(self):
        """Should wrap connection failures without a status code."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GreenfieldClient(
            "https://btcpay.example.com",
            "key",
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(GreenfieldAPIError) as exc_info:
            client.get_store("store_1")

        assert exc_info.value.message.startswith("BTCPay API request failed")
        assert exc_info.value.status_code is None

    def test_invalid_json_raises(self, responder):
        transport = responder({("GET", "/api/v1/stores/store_1"): httpx.Response(200, text="<html>")})
        client = GreenfieldClient("https://btcpay.example.com", "key", transport=transport)

        with pytest.raises(GreenfieldAPIError, match="invalid JSON"):
            client.get_store("store_1")

    def test_error_message_never_contains_api_key(self, client, greenfield):
        greenfield.fail_next("POST /api/v1/stores", status_code=500)

        with pytest.raises(GreenfieldAPIError) as exc_info:
            client.create_store("Corner Coffee")

        assert "secret-api-key" not in exc_info.value.message


class TestProvisionShop:
    """Tests for the user + store + membership composite."""

    def test_creates_user_store_and_membership(self, client, greenfield):
        provisioned = client.provision_shop("Corner Coffee", "owner@example.com", "pw")

        assert greenfield.routes() == [
            "POST /api/v1/users",
            "POST /api/v1/stores",
            f"POST /api/v1/stores/{provisioned.store.id}/users",
        ]
        membership = body(greenfield.requests[2])
        assert membership == {"userId": provisioned.user.id, "role": "Owner"}
        assert provisioned.store.name == "Corner Coffee"

    def test_failure_wraps_step_error(self, client, greenfield):
        """Should prefix the failing step's error and keep its status."""
        greenfield.fail_next("POST /api/v1/stores", status_code=500)

        with pytest.raises(GreenfieldAPIError) as exc_info:
            client.provision_shop("Corner Coffee", "owner@example.com", "pw")

        assert exc_info.value.message == (
            "Failed to set up shop on BTCPay Server: BTCPay API error: 500 - upstream exploded"
        )
        assert exc_info.value.status_code == 500

    def test_failure_does_not_roll_back_created_user(self, client, greenfield):
        """Should leave the already created user in place."""
        greenfield.fail_next("POST /api/v1/stores")

        with pytest.raises(GreenfieldAPIError):
            client.provision_shop("Corner Coffee", "owner@example.com", "pw")

        assert greenfield.routes() == ["POST /api/v1/users", "POST /api/v1/stores"]


class TestHealthCheck:
    def test_healthy(self, client):
        assert client.health_check() is True

    def test_unhealthy_on_error_status(self, client, greenfield):
        """Should return False instead of raising."""
        greenfield.fail_next("GET /api/v1/health", status_code=503)

        assert client.health_check() is False


class TestCreateGreenfieldClient:
    """Tests for the client factory."""

    @pytest.mark.parametrize(
        "host_url, api_key",
        [(None, "key"), ("", "key"), ("https://btcpay.example.com", None)],
    )
    def test_missing_configuration(self, host_url, api_key):
        with pytest.raises(ConfigurationError):
            create_greenfield_client(host_url, api_key)

    def test_live_client(self):
        client = create_greenfield_client("https://btcpay.example.com", "key", timeout=5)

        assert type(client) is GreenfieldClient
        assert not client.is_dry_run
        client.close()

    def test_dry_run_client(self):
        """Should return the dry-run client when dry_run is set."""
        client = create_greenfield_client("https://btcpay.example.com", "key", dry_run=True)

        assert isinstance(client, DryRunGreenfieldClient)
        assert client.is_dry_run
        client.close()

"""
BTCPay Server Greenfield API adapter.

All calls to a provider's BTCPay Server go through GreenfieldClient so that
authentication, timeouts, error translation and timing logs are handled in
one place.

Documentation: https://docs.btcpayserver.org/API/Greenfield/v1/

Features:
- httpx client with base URL, token auth header and timeout
- Non-2xx responses and transport failures raised as GreenfieldAPIError
- Structured logging with timing metrics (API keys are never logged)
- Pluggable transport for tests (httpx.MockTransport)

Usage:
    from marketplace.adapters import create_greenfield_client

    client = create_greenfield_client(provider.host_url, api_key, dry_run=False)
    provisioned = client.provision_shop(
        name="Corner Coffee",
        email="owner@example.com",
        password=generate_password(),
    )
    shop.btcpay_store_id = provisioned.store.id
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from marketplace.exceptions import ConfigurationError, GreenfieldAPIError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Data Types
# =============================================================================


class StoreRole(str, Enum):
    OWNER = "Owner"
    MANAGER = "Manager"
    GUEST = "Guest"


@dataclass
class GreenfieldUser:
    id: str
    email: str
    email_confirmed: bool = False
    requires_email_confirmation: bool = False
    approved: bool = False
    roles: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GreenfieldUser:
        return cls(
            id=data["id"],
            email=data.get("email", ""),
            email_confirmed=bool(data.get("emailConfirmed", False)),
            requires_email_confirmation=bool(data.get("requiresEmailConfirmation", False)),
            approved=bool(data.get("approved", False)),
            roles=list(data.get("roles") or []),
        )


@dataclass
class GreenfieldStore:
    id: str
    name: str
    website: str | None = None
    speed_policy: str | None = None
    default_currency: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GreenfieldStore:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            website=data.get("website"),
            speed_policy=data.get("speedPolicy"),
            default_currency=data.get("defaultCurrency"),
        )


@dataclass
class StoreMember:
    user_id: str
    role: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> StoreMember:
        return cls(user_id=data["userId"], role=data.get("role", ""))


@dataclass
class WebhookDescriptor:
    id: str
    url: str
    events: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any], events: list[str]) -> WebhookDescriptor:
        authorized = data.get("authorizedEvents") or {}
        return cls(
            id=data["id"],
            url=data.get("url", ""),
            events=list(authorized.get("specificEvents") or data.get("events") or events),
        )


@dataclass
class ProvisionedShop:
    """Result of provision_shop(): the new account and the store it owns."""

    user: GreenfieldUser
    store: GreenfieldStore


# =============================================================================
# Client
# =============================================================================


class GreenfieldClient:
    """
    Client for one BTCPay Server instance.

    Args:
        host_url: Server base URL (a trailing slash is ignored)
        api_key: Greenfield API key with user and store management permissions
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        host_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = host_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"token {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_dry_run(self) -> bool:
        return False

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GreenfieldClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send an authenticated request and decode the JSON body.

        Returns:
            Decoded JSON, or an empty dict for 204 / empty responses

        Raises:
            GreenfieldAPIError: On transport failure, non-2xx status or
                an undecodable body
        """
        log_context = {
            "operation": f"{method} {endpoint}",
            "host": self.base_url,
        }
        start_time = time.time()
        logger.info("Starting Greenfield request", extra=log_context)

        try:
            response = self._client.request(method, endpoint, json=payload)
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Greenfield request failed",
                extra={**log_context, "duration_ms": duration_ms, "error_type": type(e).__name__},
            )
            raise GreenfieldAPIError(f"BTCPay API request failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        if response.is_error:
            logger.error(
                "Greenfield API error",
                extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
            )
            raise GreenfieldAPIError(
                f"BTCPay API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

        logger.info(
            "Greenfield request completed",
            extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise GreenfieldAPIError(
                "BTCPay API returned an invalid JSON body",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    # =========================================================================
    # Users
    # =========================================================================

    def create_user(self, email: str, password: str) -> GreenfieldUser:
        data = self._request(
            "POST",
            "/api/v1/users",
            {"email": email, "password": password, "isAdministrator": False},
        )
        return GreenfieldUser.from_api(data)

    def get_user(self, user_id: str) -> GreenfieldUser:
        return GreenfieldUser.from_api(self._request("GET", f"/api/v1/users/{user_id}"))

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/api/v1/users/{user_id}")

    # =========================================================================
    # Stores
    # =========================================================================

    def create_store(self, name: str, website: str | None = None) -> GreenfieldStore:
        payload: dict[str, Any] = {"name": name, "defaultCurrency": "BTC"}
        if website:
            payload["website"] = website
        return GreenfieldStore.from_api(self._request("POST", "/api/v1/stores", payload))

    def get_store(self, store_id: str) -> GreenfieldStore:
        return GreenfieldStore.from_api(self._request("GET", f"/api/v1/stores/{store_id}"))

    def update_store(self, store_id: str, changes: dict[str, Any]) -> GreenfieldStore:
        return GreenfieldStore.from_api(
            self._request("PUT", f"/api/v1/stores/{store_id}", changes)
        )

    def delete_store(self, store_id: str) -> None:
        self._request("DELETE", f"/api/v1/stores/{store_id}")

    # =========================================================================
    # Store membership
    # =========================================================================

    def add_store_member(
        self,
        store_id: str,
        user_id: str,
        role: StoreRole | str = StoreRole.OWNER,
    ) -> None:
        """
        Grant a user a role on a store.

        Raises:
            ValueError: If role is not Owner, Manager or Guest
        """
        role = StoreRole(role)
        self._request(
            "POST",
            f"/api/v1/stores/{store_id}/users",
            {"userId": user_id, "role": role.value},
        )

    def remove_store_member(self, store_id: str, user_id: str) -> None:
        self._request("DELETE", f"/api/v1/stores/{store_id}/users/{user_id}")

    def list_store_members(self, store_id: str) -> list[StoreMember]:
        data = self._request("GET", f"/api/v1/stores/{store_id}/users")
        return [StoreMember.from_api(item) for item in data or []]

    # =========================================================================
    # Webhooks
    # =========================================================================

    def create_webhook(
        self,
        store_id: str,
        url: str,
        events: list[str],
        secret: str | None = None,
    ) -> WebhookDescriptor:
        payload: dict[str, Any] = {
            "url": url,
            "authorizedEvents": {"everything": False, "specificEvents": list(events)},
        }
        if secret:
            payload["secret"] = secret
        data = self._request("POST", f"/api/v1/stores/{store_id}/webhooks", payload)
        return WebhookDescriptor.from_api(data, events)

    # =========================================================================
    # Composite operations
    # =========================================================================

    def provision_shop(
        self,
        name: str,
        email: str,
        password: str,
        website: str | None = None,
    ) -> ProvisionedShop:
        """
        Create a user and a store, then make the user the store's Owner.

        Partially created resources are not rolled back on failure.

        Raises:
            GreenfieldAPIError: "Failed to set up shop on BTCPay Server: ..."
                wrapping the failing step's error
        """
        try:
            logger.info("Creating BTCPay user", extra={"host": self.base_url})
            user = self.create_user(email, password)

            logger.info("Creating BTCPay store", extra={"host": self.base_url, "store_name": name})
            store = self.create_store(name, website)

            logger.info(
                "Adding user to store as Owner",
                extra={"host": self.base_url, "btcpay_user_id": user.id, "btcpay_store_id": store.id},
            )
            self.add_store_member(store.id, user.id, StoreRole.OWNER)
        except GreenfieldAPIError as e:
            logger.error("BTCPay shop setup failed", extra={"host": self.base_url})
            raise GreenfieldAPIError(
                f"Failed to set up shop on BTCPay Server: {e.message}",
                status_code=e.status_code,
                response_text=e.response_text,
            ) from e

        return ProvisionedShop(user=user, store=store)

    def health_check(self) -> bool:
        """Return True if the server answers the health endpoint."""
        try:
            self._request("GET", "/api/v1/health")
        except GreenfieldAPIError:
            logger.warning("BTCPay health check failed", extra={"host": self.base_url})
            return False
        return True


def create_greenfield_client(
    host_url: str | None,
    api_key: str | None,
    *,
    dry_run: bool = False,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> GreenfieldClient:
    """
    Build a Greenfield client for a provider.

    Returns the dry-run client when dry_run is set.

    Raises:
        ConfigurationError: If host URL or API key is missing
    """
    if not host_url or not api_key:
        raise ConfigurationError("BTCPay host URL and API key are required")

    if dry_run:
        from marketplace.adapters.dry_run import DryRunGreenfieldClient

        logger.info("Using dry-run Greenfield client", extra={"host": host_url})
        return DryRunGreenfieldClient(host_url, api_key, timeout=timeout)

    return GreenfieldClient(host_url, api_key, timeout=timeout, transport=transport)

"""
Dry-run Greenfield client.

Used when BTCPAY_DRY_RUN is enabled (local development, demos, staging
without a BTCPay Server). Every operation logs what it would have done and
returns a deterministic mock instead of touching the network.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from marketplace.adapters.btcpay import (
    GreenfieldClient,
    GreenfieldStore,
    GreenfieldUser,
    ProvisionedShop,
    StoreMember,
    StoreRole,
    WebhookDescriptor,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def mock_user(email: str) -> GreenfieldUser:
    return GreenfieldUser(
        id=f"dryrun_user_{_timestamp_ms()}",
        email=email,
        email_confirmed=True,
        requires_email_confirmation=False,
        approved=True,
        roles=["User"],
    )


def mock_store(name: str) -> GreenfieldStore:
    return GreenfieldStore(
        id=f"dryrun_store_{_timestamp_ms()}",
        name=name,
        website=None,
        speed_policy="MediumSpeed",
        default_currency="BTC",
    )


class DryRunGreenfieldClient(GreenfieldClient):
    """GreenfieldClient that performs no network I/O."""

    @property
    def is_dry_run(self) -> bool:
        return True

    def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        raise RuntimeError(f"Dry-run client attempted a real request: {method} {endpoint}")

    def create_user(self, email: str, password: str) -> GreenfieldUser:
        logger.info(f"[DRY RUN] Would create user: {email}")
        return mock_user(email)

    def get_user(self, user_id: str) -> GreenfieldUser:
        logger.info(f"[DRY RUN] Would get user: {user_id}")
        return mock_user("dryrun@example.com")

    def delete_user(self, user_id: str) -> None:
        logger.info(f"[DRY RUN] Would delete user: {user_id}")

    def create_store(self, name: str, website: str | None = None) -> GreenfieldStore:
        logger.info(f"[DRY RUN] Would create store: {name}")
        return mock_store(name)

    def get_store(self, store_id: str) -> GreenfieldStore:
        logger.info(f"[DRY RUN] Would get store: {store_id}")
        return mock_store("Dry Run Store")

    def update_store(self, store_id: str, changes: dict[str, Any]) -> GreenfieldStore:
        logger.info(f"[DRY RUN] Would update store: {store_id}")
        return mock_store("Updated Store")

    def delete_store(self, store_id: str) -> None:
        logger.info(f"[DRY RUN] Would delete store: {store_id}")

    def add_store_member(
        self,
        store_id: str,
        user_id: str,
        role: StoreRole | str = StoreRole.OWNER,
    ) -> None:
        role = StoreRole(role)
        logger.info(f"[DRY RUN] Would add user {user_id} to store {store_id} as {role.value}")

    def remove_store_member(self, store_id: str, user_id: str) -> None:
        logger.info(f"[DRY RUN] Would remove user {user_id} from store {store_id}")

    def list_store_members(self, store_id: str) -> list[StoreMember]:
        logger.info(f"[DRY RUN] Would get users for store: {store_id}")
        return [StoreMember(user_id="dryrun_user_123", role=StoreRole.OWNER.value)]

    def create_webhook(
        self,
        store_id: str,
        url: str,
        events: list[str],
        secret: str | None = None,
    ) -> WebhookDescriptor:
        logger.info(f"[DRY RUN] Would create webhook for store {store_id}: {url}")
        return WebhookDescriptor(id="dryrun_webhook_123", url=url, events=list(events))

    def provision_shop(
        self,
        name: str,
        email: str,
        password: str,
        website: str | None = None,
    ) -> ProvisionedShop:
        logger.info(f"[DRY RUN] Would set up shop: {name}")
        return super().provision_shop(name, email, password, website)

    def health_check(self) -> bool:
        logger.info("[DRY RUN] Would check BTCPay Server health")
        return True

"""
Connection lifecycle manager.

Owns every status change of a Connection after creation:

    PENDING ──► ACTIVE ──────────────► DISCONNECTED
       │          │                        ▲
       │          └──► PENDING_SETUP       │
       └──► FAILED ────────────────────────┘
    FAILED / PENDING_SETUP ──(manual retry)──► PENDING

Setup work is chosen by the strategy table in marketplace.strategies;
this class supplies the building blocks strategies call back into
(activate, pay, provision, ...), applies feature flags, and records
audit rows.

Provisioning retries are split in two:
- An in-request loop with a local attempt counter
  (provisioning_max_attempts, constant delay between attempts). The
  counter is never persisted.
- Manual retries bounded by Connection.retry_count (max_retries), claimed
  with an optimistic version check so two concurrent retries cannot both
  run a payment.

Partially created provider resources are not cleaned up when a later
provisioning step fails.

Usage:
    manager = ConnectionLifecycleManager.from_settings()

    result = manager.create_shop(
        request.user,
        ShopParams(name="Corner Coffee", provider_id=provider.id),
    )

    result = manager.retry(connection_id, actor=request.user)
    if not result.success:
        print(result.error, result.error_code)
"""

from __future__ import annotations

import functools
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django_fsm import can_proceed

from core.encryption import get_secret_store
from core.exceptions import DecryptionError, NotFoundError
from core.helpers import generate_password
from core.services import BaseService, ServiceResult
from marketplace.adapters.btcpay import create_greenfield_client
from marketplace.audit import AuditEvent, AuditLogger
from marketplace.conf import MarketplaceConfig
from marketplace.exceptions import (
    ConfigurationError,
    InvalidStateTransitionError,
    RetryLimitExceededError,
    StaleRecordError,
    UpstreamError,
)
from marketplace.locks import check_version
from marketplace.models import Connection, InfrastructureProvider, PaymentHistory, Shop
from marketplace.models.connection import retry_limit_message
from marketplace.services.payment_initiator import PaymentInitiator, PaymentResult
from marketplace.state_machines import (
    RETRYABLE_STATUSES,
    ConnectionStatus,
    ConnectionType,
    PaymentHistoryStatus,
    PaymentMethod,
)
from marketplace.strategies import (
    OpenContext,
    ProvisioningCredentials,
    ProvisioningOutcome,
    StrategyOutcome,
    get_strategy,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from authentication.models import User
    from core.encryption import SecretStore
    from marketplace.adapters.btcpay import GreenfieldClient, ProvisionedShop


NWC_REQUIRED_MESSAGE = "NWC connection string required for paid subscriptions"
NWC_DISABLED_MESSAGE = "NWC payments are disabled"
BTCPAY_DISABLED_MESSAGE = "BTCPay integration is disabled"
PROVIDER_CONFIG_INCOMPLETE_MESSAGE = "Provider BTCPay configuration incomplete"
NOT_RETRYABLE_MESSAGE = "Connection is not in a failed state"
UNKNOWN_RETRY_METHOD_MESSAGE = "Unable to determine retry method for this connection"
PROVISIONING_PENDING_MESSAGE = "Payment settled; store provisioning pending"
STORE_DELETED_REASON = "Store was deleted from BTCPay Server"
USER_REMOVED_REASON = "User was removed from BTCPay store"


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class ShopParams:
    """
    Parameters for creating a shop, optionally connected to a provider.

    A subscription_amount makes the connection a paid subscription, which
    then requires nwc_connection_string.
    """

    name: str
    description: str = ""
    website: str | None = None
    contact_email: str | None = None
    lightning_address: str | None = None
    is_public: bool = True
    accepts_bitcoin: bool = True
    provider_id: UUID | None = None
    subscription_amount: int | None = None
    subscription_interval: str | None = None
    nwc_connection_string: str | None = None


@dataclass
class ShopCreationResult:
    shop: Shop
    connection: Connection | None = None
    payment: PaymentResult | None = None
    provisioning: ProvisioningOutcome | None = None

    @property
    def credentials(self) -> ProvisioningCredentials | None:
        if self.provisioning is None:
            return None
        return self.provisioning.credentials


@dataclass
class RetryOutcome:
    """
    Result of one manual retry.

    can_retry_again is computed from the retry count before the claim,
    so it is False when this call used the last retry.
    """

    connection: Connection
    success: bool
    status: str
    retry_count: int
    can_retry_again: bool
    error: str | None = None
    credentials: ProvisioningCredentials | None = None


# =============================================================================
# Manager
# =============================================================================


class ConnectionLifecycleManager(BaseService):
    """
    Drives connections through their lifecycle.

    Args:
        config: Tuning knobs and feature flags
        payment_initiator: Pays subscriptions over NWC
        client_factory: (host_url, api_key) -> GreenfieldClient
        secret_store: Decrypts provider API keys
        audit: Audit trail writer
        sleep: Called between provisioning attempts
    """

    def __init__(
        self,
        config: MarketplaceConfig,
        *,
        payment_initiator: PaymentInitiator,
        client_factory: Callable[[str, str], GreenfieldClient],
        secret_store: SecretStore,
        audit: AuditLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.payment_initiator = payment_initiator
        self.client_factory = client_factory
        self.secret_store = secret_store
        self.audit = audit or AuditLogger()
        self.sleep = sleep

    @classmethod
    def from_settings(cls, config: MarketplaceConfig | None = None) -> ConnectionLifecycleManager:
        config = config or MarketplaceConfig.from_settings()
        return cls(
            config,
            payment_initiator=PaymentInitiator.from_settings(config),
            client_factory=functools.partial(
                create_greenfield_client,
                dry_run=config.btcpay_dry_run,
                timeout=config.btcpay_timeout_seconds,
            ),
            secret_store=get_secret_store(),
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_shop(self, owner: User, params: ShopParams) -> ServiceResult[ShopCreationResult]:
        """
        Create a shop and, when a provider is given, open its connection.

        Everything the request can get wrong is checked before the first
        write. Setup failures after that point do not fail the result;
        they are reflected in the connection status and setup_error.
        """
        validation = self.validate_required(name=params.name)
        if validation is not None:
            return validation

        provider = None
        if params.provider_id is not None:
            provider = InfrastructureProvider.objects.filter(pk=params.provider_id).first()
            if provider is None:
                return ServiceResult.failure("Provider not found", error_code="PROVIDER_NOT_FOUND")
            if params.subscription_amount and not params.nwc_connection_string:
                return ServiceResult.failure(
                    NWC_REQUIRED_MESSAGE,
                    error_code="VALIDATION_ERROR",
                    errors={"nwc_connection_string": [NWC_REQUIRED_MESSAGE]},
                )
            if provider.available_slots == 0:
                return ServiceResult.failure(
                    "Provider has no available slots",
                    error_code="PROVIDER_FULL",
                )

        with self.atomic():
            shop = Shop.objects.create(
                owner=owner,
                name=params.name,
                description=params.description or "",
                website=params.website,
                contact_email=params.contact_email,
                lightning_address=params.lightning_address,
                is_public=params.is_public,
                accepts_bitcoin=params.accepts_bitcoin,
            )
            connection = None
            if provider is not None:
                connection = self.open_connection(
                    shop,
                    provider,
                    subscription_amount=params.subscription_amount,
                    subscription_interval=params.subscription_interval,
                )

        self.get_logger().info(
            "Shop created",
            extra={
                "shop_id": str(shop.id),
                "owner_id": str(owner.pk),
                "provider_id": str(provider.id) if provider else None,
            },
        )

        if connection is None:
            return ServiceResult.success(ShopCreationResult(shop=shop))

        outcome = self.establish(connection, params.nwc_connection_string)
        return ServiceResult.success(
            ShopCreationResult(
                shop=shop,
                connection=connection,
                payment=outcome.payment,
                provisioning=outcome.provisioning,
            )
        )

    def open_connection(
        self,
        shop: Shop,
        provider: InfrastructureProvider,
        *,
        subscription_amount: int | None = None,
        subscription_interval: str | None = None,
    ) -> Connection:
        """Create a PENDING connection; paid when an amount is given."""
        connection_type = (
            ConnectionType.PAID_SUBSCRIPTION if subscription_amount else ConnectionType.FREE_LISTING
        )
        connection = Connection.objects.create(
            shop=shop,
            provider=provider,
            connection_type=connection_type,
            subscription_amount=subscription_amount or None,
            subscription_interval=subscription_interval or None,
        )
        self.audit.record(
            AuditEvent.CONNECTION_CREATED,
            connection,
            {
                "connection_type": connection_type,
                "provider_id": str(provider.id),
                "subscription_amount": subscription_amount,
            },
        )
        return connection

    def establish(self, connection: Connection, nwc_connection_string: str | None = None) -> StrategyOutcome:
        """Run the setup strategy for a freshly opened connection."""
        strategy = get_strategy(connection.connection_type, connection.provider.requires_provisioning)
        self.get_logger().info(
            "Establishing connection",
            extra={"connection_id": str(connection.id), "strategy": type(strategy).__name__},
        )
        return strategy.open(self, connection, OpenContext(nwc_connection_string=nwc_connection_string))

    # =========================================================================
    # Building blocks used by strategies
    # =========================================================================

    def activate(self, connection: Connection) -> None:
        self._transition(connection, "activate")

    def fail(self, connection: Connection, error: str) -> None:
        self._transition(connection, "fail", error)

    def unretryable(self, connection: Connection, message: str = UNKNOWN_RETRY_METHOD_MESSAGE) -> StrategyOutcome:
        """Fail a claimed connection that has no applicable retry step."""
        self.fail(connection, message)
        return StrategyOutcome(error=message)

    def pay(self, connection: Connection, nwc_connection_string: str | None) -> PaymentResult:
        if not self.config.features.nwc_payments:
            self.fail(connection, NWC_DISABLED_MESSAGE)
            return PaymentResult.failed(NWC_DISABLED_MESSAGE)
        result = self.payment_initiator.pay(connection, nwc_connection_string)
        self._settle_unresolved_payment(connection, result)
        return result

    def retry_payment(self, connection: Connection) -> PaymentResult:
        if not self.config.features.nwc_payments:
            self.fail(connection, NWC_DISABLED_MESSAGE)
            return PaymentResult.failed(NWC_DISABLED_MESSAGE)
        result = self.payment_initiator.retry(connection)
        self._settle_unresolved_payment(connection, result)
        return result

    def provision(self, connection: Connection) -> ProvisioningOutcome:
        """
        Provision the shop's account on the provider during creation.

        Runs up to provisioning_max_attempts attempts with a constant delay
        between them. Exhaustion moves the connection to PENDING_SETUP.
        """
        if not self.config.features.btcpay_integration:
            self.get_logger().info(
                "BTCPay integration disabled, skipping provisioning",
                extra={"connection_id": str(connection.id)},
            )
            return ProvisioningOutcome(success=False, skipped=True)

        return self._run_provisioning(
            connection,
            max_attempts=self.config.provisioning_max_attempts,
            failure_transition="mark_pending_setup",
        )

    def defer_provisioning(self, connection: Connection) -> str | None:
        """
        Park a just-paid connection whose store is not provisioned yet.

        Returns the PENDING_SETUP reason, or None when nothing is left to
        provision (store already set up, or BTCPay integration disabled).
        """
        if connection.shop.has_provider_credentials or not self.config.features.btcpay_integration:
            return None
        self._transition(connection, "mark_pending_setup", PROVISIONING_PENDING_MESSAGE)
        return PROVISIONING_PENDING_MESSAGE

    def retry_provisioning(self, connection: Connection) -> ProvisioningOutcome:
        """Single provisioning attempt for a claimed retry; failure is FAILED."""
        if not self.config.features.btcpay_integration:
            self.fail(connection, BTCPAY_DISABLED_MESSAGE)
            return ProvisioningOutcome(success=False, skipped=True, error=BTCPAY_DISABLED_MESSAGE)

        return self._run_provisioning(connection, max_attempts=1, failure_transition="fail")

    # =========================================================================
    # Manual retry
    # =========================================================================

    def retry(
        self,
        connection_id: UUID,
        actor: User | None = None,
        *,
        expected_version: int | None = None,
    ) -> ServiceResult[RetryOutcome]:
        """
        Retry a FAILED or PENDING_SETUP connection.

        Args:
            connection_id: Connection to retry
            actor: Requesting user; must own the shop. None for system
                callers such as the periodic sweep.
            expected_version: Version the caller saw; defaults to the
                version read here

        Returns:
            ServiceResult with RetryOutcome. A retry that ran but did not
            reach ACTIVE is a failure carrying the outcome in data.
        """
        connection = self._find(connection_id, actor)
        if connection is None:
            return ServiceResult.failure("Connection not found", error_code="CONNECTION_NOT_FOUND")

        if connection.status not in RETRYABLE_STATUSES:
            return ServiceResult.failure(NOT_RETRYABLE_MESSAGE, error_code="CONNECTION_NOT_RETRYABLE")

        max_retries = self.config.max_retries
        if connection.retry_count >= max_retries:
            return ServiceResult.failure(
                retry_limit_message(max_retries),
                error_code="RETRY_LIMIT_EXCEEDED",
            )

        can_retry_again = connection.retry_count + 1 < max_retries

        try:
            with self.atomic():
                claimed = check_version(
                    Connection,
                    connection.pk,
                    expected_version if expected_version is not None else connection.version,
                )
                old_status = claimed.status
                claimed.begin_retry(max_retries=max_retries)
                claimed.save()
        except (StaleRecordError, RetryLimitExceededError, NotFoundError) as e:
            self.get_logger().warning(
                "Retry claim rejected",
                extra={"connection_id": str(connection_id), "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            f"Retrying connection (attempt {claimed.retry_count})",
            extra={"connection_id": str(claimed.id), "retry_count": claimed.retry_count},
        )
        self.audit.status_changed(claimed, old_status, claimed.status)
        self.audit.record(
            AuditEvent.CONNECTION_RETRY_ATTEMPTED,
            claimed,
            {"retry_count": claimed.retry_count, "previous_status": old_status},
        )

        strategy = get_strategy(claimed.connection_type, claimed.provider.requires_provisioning)
        attempt = strategy.retry(self, claimed)

        succeeded = claimed.status == ConnectionStatus.ACTIVE
        outcome = RetryOutcome(
            connection=claimed,
            success=succeeded,
            status=claimed.status,
            retry_count=claimed.retry_count,
            can_retry_again=can_retry_again,
            error=None if succeeded else (attempt.error or claimed.setup_error),
            credentials=attempt.credentials,
        )
        if succeeded:
            return ServiceResult.success(outcome)
        return ServiceResult.failure(outcome.error, error_code="RETRY_FAILED", data=outcome)

    # =========================================================================
    # Disconnects and webhook-fed transitions
    # =========================================================================

    def disconnect(
        self,
        connection_id: UUID,
        reason: str = "Disconnected by shop owner",
        actor: User | None = None,
    ) -> ServiceResult[Connection]:
        connection = self._find(connection_id, actor)
        if connection is None:
            return ServiceResult.failure("Connection not found", error_code="CONNECTION_NOT_FOUND")

        if not can_proceed(connection.disconnect):
            return ServiceResult.failure(
                f"Cannot disconnect connection in {connection.status} state",
                error_code="INVALID_STATE_TRANSITION",
            )

        self._transition(connection, "disconnect", reason)
        return ServiceResult.success(connection)

    def handle_store_deleted(self, connection: Connection) -> PaymentHistory:
        """The provider deleted the shop's store: disconnect and forget it."""
        shop = connection.shop
        with self.atomic():
            self._force_disconnect(connection, STORE_DELETED_REASON)
            shop.clear_provider_credentials()
            shop.save(update_fields=["btcpay_store_id", "btcpay_user_id", "btcpay_username", "updated_at"])
            return self._webhook_row(
                connection,
                PaymentHistoryStatus.STORE_DELETED_WEBHOOK,
                "Store deleted from BTCPay Server",
            )

    def handle_member_removed(self, connection: Connection, user_id: str | None) -> PaymentHistory | None:
        """
        A user was removed from the shop's store.

        Only the shop's own provisioned user matters; anyone else is
        ignored and None is returned.
        """
        if not user_id or user_id != connection.shop.btcpay_user_id:
            self.get_logger().info(
                "Ignoring removal of a user the shop does not own",
                extra={"connection_id": str(connection.id)},
            )
            return None

        with self.atomic():
            self._force_disconnect(connection, USER_REMOVED_REASON)
            return self._webhook_row(
                connection,
                PaymentHistoryStatus.USER_REMOVED_WEBHOOK,
                f"User {user_id} removed from store",
            )

    def record_store_modified(self, connection: Connection) -> PaymentHistory:
        return self._webhook_row(connection, PaymentHistoryStatus.STORE_MODIFIED_WEBHOOK)

    # =========================================================================
    # Providers
    # =========================================================================

    def provider_health(self, provider: InfrastructureProvider) -> bool:
        """
        Ask the provider's server whether it is healthy.

        Raises:
            ConfigurationError: If host URL or API key is missing
            DecryptionError: If the stored API key cannot be read
        """
        with self._client_for(provider) as client:
            return client.health_check()

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _find(connection_id: UUID, actor: User | None) -> Connection | None:
        queryset = Connection.objects.select_related("shop", "provider").filter(pk=connection_id)
        if actor is not None:
            queryset = queryset.filter(shop__owner=actor)
        return queryset.first()

    def _transition(self, connection: Connection, name: str, *args) -> None:
        """
        Apply an FSM transition, save and audit it.

        Raises:
            InvalidStateTransitionError: If not allowed from the current status
        """
        method = getattr(connection, name)
        old_status = connection.status
        if not can_proceed(method):
            raise InvalidStateTransitionError(
                f"Cannot {name} connection in {old_status} state",
                details={"connection_id": str(connection.id), "current_state": old_status},
            )
        method(*args)
        connection.save()
        self.audit.status_changed(connection, old_status, connection.status)

    def _force_disconnect(self, connection: Connection, reason: str) -> bool:
        if not can_proceed(connection.disconnect):
            self.get_logger().warning(
                f"Cannot disconnect connection in {connection.status} state",
                extra={"connection_id": str(connection.id), "reason": reason},
            )
            return False
        self._transition(connection, "disconnect", reason)
        return True

    def _settle_unresolved_payment(self, connection: Connection, result: PaymentResult) -> None:
        # The initiator never raises; an unexpected error can leave the
        # connection PENDING, which nothing else would resolve.
        if not result.success and connection.status == ConnectionStatus.PENDING:
            self.fail(connection, f"Payment initiation error: {result.error}")

    @staticmethod
    def _webhook_row(connection: Connection, status: str, error_message: str | None = None) -> PaymentHistory:
        return PaymentHistory.objects.create(
            connection=connection,
            amount=0,
            status=status,
            payment_method=PaymentMethod.BTCPAY_WEBHOOK,
            error_message=error_message,
        )

    def _client_for(self, provider: InfrastructureProvider) -> GreenfieldClient:
        if not provider.host_url or not provider.encrypted_api_key:
            raise ConfigurationError(
                PROVIDER_CONFIG_INCOMPLETE_MESSAGE,
                details={"provider_id": str(provider.id)},
            )
        api_key = provider.get_api_key(self.secret_store)
        return self.client_factory(provider.host_url, api_key)

    def _run_provisioning(
        self,
        connection: Connection,
        *,
        max_attempts: int,
        failure_transition: str,
    ) -> ProvisioningOutcome:
        shop = connection.shop
        log_context = {
            "connection_id": str(connection.id),
            "shop_id": str(shop.id),
            "provider_id": str(connection.provider_id),
        }

        try:
            client = self._client_for(connection.provider)
        except (ConfigurationError, DecryptionError) as e:
            self.get_logger().error(
                "Cannot provision: provider not usable",
                extra={**log_context, "error": e.message},
            )
            self._transition(connection, failure_transition, e.message)
            return ProvisioningOutcome(success=False, error=e.message)

        username = shop.provisioning_username()
        password = generate_password()
        email = shop.provisioning_email(username)
        max_attempts = max(1, max_attempts)
        attempts = 0
        error = None

        with client:
            while attempts < max_attempts:
                attempts += 1
                self.get_logger().info(
                    f"Provisioning shop (attempt {attempts}/{max_attempts})",
                    extra=log_context,
                )
                try:
                    provisioned = client.provision_shop(shop.name, email, password, shop.website or None)
                except UpstreamError as e:
                    error = e.message
                    self.get_logger().warning(
                        f"Provisioning attempt {attempts} failed",
                        extra={**log_context, "error": error},
                    )
                    if attempts < max_attempts:
                        self.sleep(self.config.provisioning_retry_delay_seconds)
                    continue

                return self._provisioning_succeeded(
                    connection, provisioned, username, password, attempts, dry_run=client.is_dry_run
                )

        self.get_logger().error(
            "Provisioning attempts exhausted",
            extra={**log_context, "attempts": attempts},
        )
        self._transition(connection, failure_transition, error)
        return ProvisioningOutcome(success=False, attempts=attempts, error=error)

    def _provisioning_succeeded(
        self,
        connection: Connection,
        provisioned: ProvisionedShop,
        username: str,
        password: str,
        attempts: int,
        *,
        dry_run: bool,
    ) -> ProvisioningOutcome:
        shop = connection.shop
        shop.btcpay_store_id = provisioned.store.id
        shop.btcpay_user_id = provisioned.user.id
        shop.btcpay_username = username
        shop.save(update_fields=["btcpay_store_id", "btcpay_user_id", "btcpay_username", "updated_at"])

        self.audit.record(
            AuditEvent.BTCPAY_USER_CREATED,
            connection,
            {"btcpay_user_id": provisioned.user.id, "dry_run": dry_run},
        )
        self.audit.record(
            AuditEvent.BTCPAY_STORE_CREATED,
            connection,
            {"btcpay_store_id": provisioned.store.id, "dry_run": dry_run},
        )
        self.activate(connection)

        return ProvisioningOutcome(
            success=True,
            attempts=attempts,
            credentials=ProvisioningCredentials(
                store_id=provisioned.store.id,
                user_id=provisioned.user.id,
                username=username,
                temp_password=password,
            ),
        )

"""
Pytest fixtures for marketplace tests.

Provides users, shops, providers and connections in the states the
lifecycle cares about, plus a ConnectionLifecycleManager wired to test
doubles (FakeResolver, FakeRelay, GreenfieldServer) and a recording sleep.

Usage:
    def test_retry(manager, failed_connection, user):
        result = manager.retry(failed_connection.id, actor=user)
        assert result.success
"""

import pytest

from authentication.tests.factories import UserFactory
from core.encryption import get_secret_store
from marketplace.audit import AuditLogger
from marketplace.conf import FeatureFlags, MarketplaceConfig
from marketplace.services import ConnectionLifecycleManager, PaymentInitiator
from marketplace.state_machines import ConnectionStatus
from marketplace.tests.factories import (
    BTCPayProviderFactory,
    ConnectionFactory,
    InfrastructureProviderFactory,
    ShopFactory,
)
from marketplace.tests.mocks import FakeRelay, FakeResolver, GreenfieldServer

# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user(db):
    """Shop owner."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


# =============================================================================
# Shops and Providers
# =============================================================================


@pytest.fixture
def shop(db, user):
    return ShopFactory(owner=user)


@pytest.fixture
def provider(db):
    """Provider without provisioning (service type OTHER)."""
    return InfrastructureProviderFactory()


@pytest.fixture
def btcpay_provider(db):
    """BTCPay provider with host URL, API key and webhook secret."""
    return BTCPayProviderFactory()


# =============================================================================
# Connections
# =============================================================================


@pytest.fixture
def pending_connection(db, shop, provider):
    return ConnectionFactory(shop=shop, provider=provider)


@pytest.fixture
def active_connection(db, shop, provider):
    return ConnectionFactory(shop=shop, provider=provider, status=ConnectionStatus.ACTIVE)


@pytest.fixture
def failed_connection(db, shop, provider):
    """Free listing that failed once without using a retry."""
    return ConnectionFactory(
        shop=shop,
        provider=provider,
        status=ConnectionStatus.FAILED,
        setup_error="Something went wrong",
    )


@pytest.fixture
def failed_paid_connection(db, shop, provider):
    """Paid subscription whose first payment failed."""
    return ConnectionFactory(
        shop=shop,
        provider=provider,
        paid=True,
        status=ConnectionStatus.FAILED,
        setup_error="Payment failed: insufficient balance",
    )


@pytest.fixture
def pending_setup_connection(db, shop, btcpay_provider):
    """Free listing on BTCPay whose provisioning ran out of attempts."""
    return ConnectionFactory(
        shop=shop,
        provider=btcpay_provider,
        status=ConnectionStatus.PENDING_SETUP,
        setup_error="BTCPay API error: 500 - upstream exploded",
    )


# =============================================================================
# Services and Test Doubles
# =============================================================================


@pytest.fixture
def secret_store():
    return get_secret_store()


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def fake_resolver():
    return FakeResolver()


@pytest.fixture
def fake_relay():
    return FakeRelay()


@pytest.fixture
def greenfield():
    """In-memory BTCPay Server."""
    return GreenfieldServer()


@pytest.fixture
def features():
    return FeatureFlags()


@pytest.fixture
def config(features):
    return MarketplaceConfig(
        max_retries=5,
        provisioning_max_attempts=2,
        provisioning_retry_delay_seconds=3,
        features=features,
    )


@pytest.fixture
def sleeps():
    """Delays requested by the provisioning loop."""
    return []


@pytest.fixture
def initiator(secret_store, fake_resolver, fake_relay, audit):
    return PaymentInitiator(secret_store, fake_resolver, fake_relay, audit)


@pytest.fixture
def manager(config, initiator, greenfield, secret_store, audit, sleeps):
    return ConnectionLifecycleManager(
        config,
        payment_initiator=initiator,
        client_factory=greenfield.client_factory,
        secret_store=secret_store,
        audit=audit,
        sleep=sleeps.append,
    )

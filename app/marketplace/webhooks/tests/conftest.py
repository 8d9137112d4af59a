"""
Pytest fixtures for BTCPay webhook tests.

Provides a provisioned shop connected to a BTCPay provider, signed
webhook deliveries, and rate limiter stubs.
"""

import json

import pytest
from django.test import RequestFactory

from core.rate_limit import RateLimitResult
from marketplace.state_machines import ConnectionStatus
from marketplace.tests.conftest import (  # noqa: F401
    audit,
    btcpay_provider,
    config,
    fake_relay,
    fake_resolver,
    features,
    greenfield,
    initiator,
    manager,
    secret_store,
    sleeps,
    user,
)
from marketplace.tests.factories import TEST_WEBHOOK_SECRET, ConnectionFactory, ShopFactory
from marketplace.webhooks.signature import compute_signature

STORE_ID = "store_abc"
BTCPAY_USER_ID = "user_abc"


# =============================================================================
# Shop and Connection Fixtures
# =============================================================================


@pytest.fixture
def provisioned_shop(db, user):
    """Shop whose account was created on the provider's BTCPay Server."""
    return ShopFactory(
        owner=user,
        btcpay_store_id=STORE_ID,
        btcpay_user_id=BTCPAY_USER_ID,
        btcpay_username="cornercoffee_1a2b3c4d",
    )


@pytest.fixture
def btcpay_connection(db, provisioned_shop, btcpay_provider):
    return ConnectionFactory(
        shop=provisioned_shop,
        provider=btcpay_provider,
        status=ConnectionStatus.ACTIVE,
    )


# =============================================================================
# Delivery Fixtures
# =============================================================================


def make_payload(event_type="store.modified", store_id=STORE_ID, **extra):
    return {"type": event_type, "storeId": store_id, "timestamp": 1767225600, **extra}


@pytest.fixture
def webhook_request():
    """
    Build a POST request carrying a BTCPay delivery.

    Signs the body with the test webhook secret unless signature is given;
    pass signature=None to omit the header.
    """
    factory = RequestFactory()
    unset = object()

    def build(payload=None, signature=unset, body=None):
        if body is None:
            body = json.dumps(payload if payload is not None else make_payload()).encode()
        headers = {}
        if signature is unset:
            signature = compute_signature(body, TEST_WEBHOOK_SECRET)
        if signature is not None:
            headers["HTTP_BTCPAY_SIG"] = signature
        return factory.post(
            "/api/v1/marketplace/webhooks/btcpay/",
            data=body,
            content_type="application/json",
            **headers,
        )

    return build


# =============================================================================
# Rate Limiter Stubs
# =============================================================================


class StubRateLimiter:
    """RateLimiter double answering with a fixed decision."""

    def __init__(self, allowed=True):
        self.allowed = allowed
        self.identifiers = []

    def check(self, identifier, policy):
        self.identifiers.append(identifier)
        return RateLimitResult(
            allowed=self.allowed,
            remaining=0 if not self.allowed else policy.max_requests - 1,
            reset_at=1767225660,
            limit=policy.max_requests,
        )


@pytest.fixture
def open_limiter():
    return StubRateLimiter(allowed=True)


@pytest.fixture
def closed_limiter():
    return StubRateLimiter(allowed=False)

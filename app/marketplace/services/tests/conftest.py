"""
Pytest fixtures for marketplace service tests.

Reuses the shop, provider, connection and test-double fixtures defined for
the marketplace app.
"""

from marketplace.tests.conftest import (  # noqa: F401
    active_connection,
    audit,
    btcpay_provider,
    config,
    failed_connection,
    failed_paid_connection,
    fake_relay,
    fake_resolver,
    features,
    greenfield,
    initiator,
    manager,
    other_user,
    pending_connection,
    pending_setup_connection,
    provider,
    secret_store,
    shop,
    sleeps,
    user,
)

"""
Pytest fixtures for adapter tests.

Adapters are exercised against httpx.MockTransport; no test here opens a
network connection.
"""

import httpx
import pytest

from marketplace.tests.mocks import GreenfieldServer


@pytest.fixture
def greenfield():
    """In-memory BTCPay Server recording requests."""
    return GreenfieldServer()


@pytest.fixture
def client(greenfield):
    """GreenfieldClient talking to the in-memory server."""
    with greenfield.client(api_key="secret-api-key") as client:
        yield client


@pytest.fixture
def responder():
    """
    Build a MockTransport from a {(method, path): response} map.

    Unmapped requests answer 404. The returned transport exposes the
    recorded requests as .requests.
    """

    def build(routes):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            response = routes.get((request.method, request.url.path))
            if callable(response):
                return response(request)
            return response or httpx.Response(404, text="not found")

        transport = httpx.MockTransport(handler)
        transport.requests = requests
        return transport

    return build

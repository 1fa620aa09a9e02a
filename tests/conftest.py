"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from shopsync.catalog.repository import InMemoryCatalogRepository, InMemorySettingsStore
from shopsync.common.encryption import SecretBox
from shopsync.models import RemoteProductPreview
from shopsync.tiktok.auth import AuthGateway
from shopsync.tiktok.fixture_provider import FixtureCatalogProvider

APP_KEY = "test-app-key"
APP_SECRET = "test-app-secret"


class FakeClock:
    """Controllable clock for expiry and cache tests."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="session")
def secret_box():
    """One SecretBox per session; key derivation is deliberately slow."""
    return SecretBox("test-passphrase")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemorySettingsStore()


@pytest.fixture
def repository():
    return InMemoryCatalogRepository()


@pytest.fixture
def provider():
    return FixtureCatalogProvider(app_key=APP_KEY, app_secret=APP_SECRET)


@pytest.fixture
def gateway(store, secret_box, provider, clock):
    """Gateway with app credentials stored but no tokens yet."""
    gw = AuthGateway(store, secret_box, provider, clock=clock)
    gw.configure_app(app_key=APP_KEY, app_secret=APP_SECRET)
    return gw


@pytest.fixture
def authorized_gateway(gateway):
    """Gateway holding tokens from a completed code exchange."""
    gateway.exchange_authorization_code("auth-code")
    return gateway


def make_product(product_id="p1", title="Product", price="10.00", seller_sku="SKU-1",
                 status="ACTIVATE", currency="USD"):
    return RemoteProductPreview(
        id=product_id,
        title=title,
        status=status,
        seller_sku=seller_sku,
        price=price,
        currency=currency,
    )


def make_raw_product(n, price=None, seller_sku=None, status="ACTIVATE"):
    """Raw provider payload for one product, as the search endpoint returns it."""
    return {
        "id": f"p{n}",
        "title": f"Product {n}",
        "status": status,
        "skus": [{
            "id": f"sku-{n}",
            "seller_sku": seller_sku if seller_sku is not None else f"SKU-{n}",
            "price": {"amount": price if price is not None else f"{n}.50", "currency": "USD"},
        }],
    }

"""Tests for shopsync/tiktok/pager.py"""

from datetime import datetime, timezone

import pytest

from conftest import APP_KEY, APP_SECRET, make_raw_product
from shopsync.common.errors import ProviderError
from shopsync.tiktok.fixture_provider import FixtureCatalogProvider
from shopsync.tiktok.pager import CatalogPager, from_unix_timestamp, normalize_product


@pytest.fixture
def provider():
    products = [make_raw_product(n) for n in range(1, 8)]
    return FixtureCatalogProvider(app_key=APP_KEY, app_secret=APP_SECRET, products=products)


@pytest.fixture
def pager(authorized_gateway, provider):
    return CatalogPager(authorized_gateway, provider)


class TestNormalizeProduct:
    def test_first_sku_only(self):
        raw = {
            "id": "p1",
            "title": " Serum ",
            "status": "ACTIVATE",
            "sales_regions": ["US", "GB"],
            "update_time": 1700000000,
            "skus": [
                {"id": "s1", "seller_sku": "SER-1", "price": {"amount": "19.99", "currency": "USD"}},
                {"id": "s2", "seller_sku": "SER-2", "price": {"amount": "29.99", "currency": "USD"}},
            ],
        }
        product = normalize_product(raw)
        assert product.id == "p1"
        assert product.title == "Serum"
        assert product.sku_id == "s1"
        assert product.seller_sku == "SER-1"
        assert product.price == "19.99"
        assert product.currency == "USD"
        assert product.region == "US"
        assert product.updated_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_no_skus(self):
        product = normalize_product({"id": "p1", "title": "Bare"})
        assert product.seller_sku is None
        assert product.price is None
        assert product.region is None

    def test_blank_seller_sku_is_none(self):
        product = normalize_product({"id": "p1", "title": "T", "skus": [{"seller_sku": "  "}]})
        assert product.seller_sku is None

    def test_legacy_field_names(self):
        product = normalize_product({"product_id": 42, "name": "Old"})
        assert product.id == "42"
        assert product.title == "Old"

    @pytest.mark.parametrize("raw", [
        {"id": "p1", "title": "T", "skus": {"id": "s1"}},
        {"id": "p1", "title": "T", "skus": "SKU-1"},
        {"id": "p1", "title": "T", "skus": [{"price": "9.99"}]},
        {"id": "p1", "title": "T", "sales_regions": "US"},
    ])
    def test_odd_shapes_degrade_to_none(self, raw):
        product = normalize_product(raw)
        assert product.id == "p1"
        assert product.price is None
        assert product.region is None


class TestFromUnixTimestamp:
    @pytest.mark.parametrize("value", [None, 0, -5, "1700000000", True])
    def test_invalid(self, value):
        assert from_unix_timestamp(value) is None

    @pytest.mark.parametrize("value", [1700000000000, 1e300, float("inf")])
    def test_out_of_range(self, value):
        assert from_unix_timestamp(value) is None


class TestFetchPage:
    def test_first_page(self, pager):
        page = pager.fetch_page("fixture-cipher-1", page_size=5)
        assert [p.id for p in page.products] == ["p1", "p2", "p3", "p4", "p5"]
        assert page.total_count == 7
        assert page.next_page_token == "5"

    def test_last_page_has_no_token(self, pager):
        page = pager.fetch_page("fixture-cipher-1", page_size=5, page_token="5")
        assert [p.id for p in page.products] == ["p6", "p7"]
        assert page.next_page_token is None

    def test_page_size_clamped(self, pager):
        assert len(pager.fetch_page("fixture-cipher-1", page_size=0).products) == 1
        assert len(pager.fetch_page("fixture-cipher-1", page_size="junk").products) == 7

    def test_none_token_means_first_page(self, pager):
        page = pager.fetch_page("fixture-cipher-1", page_size=2, page_token=None)
        assert page.products[0].id == "p1"

    def test_provider_error_propagates(self, pager):
        with pytest.raises(ProviderError):
            pager.fetch_page("unknown-cipher")

    def test_refreshes_on_rejected_token(self, pager, provider):
        provider.expire_access_token()
        page = pager.fetch_page("fixture-cipher-1", page_size=3)
        assert len(page.products) == 3
        assert provider.calls.count("refresh") == 1

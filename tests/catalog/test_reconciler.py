"""Tests for shopsync/catalog/reconciler.py"""

from unittest.mock import MagicMock, patch

import pytest

from conftest import make_product
from shopsync.catalog.reconciler import (
    ProductReconciler,
    import_sku,
    map_status,
    merge_tags,
    normalize_sku,
    provenance_tags,
    validate_product,
)
from shopsync.catalog.repository import InMemoryCatalogRepository
from shopsync.common.constants import MAX_FAILURES
from shopsync.common.errors import PersistenceError
from shopsync.models import LocalCatalogEntry


@pytest.fixture
def reconciler(repository):
    return ProductReconciler(repository)


class TestHelpers:
    def test_normalize_sku(self):
        assert normalize_sku("  AbC-1 ") == "abc-1"
        assert normalize_sku(None) == ""

    @pytest.mark.parametrize("status", ["ACTIVATE", "active", " Live ", "ON_SALE", "approved", "available"])
    def test_active_statuses(self, status):
        assert map_status(status) == (True, "published")

    @pytest.mark.parametrize("status", ["DRAFT", "SELLER_DEACTIVATED", "", None, "something-new"])
    def test_everything_else_is_draft(self, status):
        assert map_status(status) == (False, "draft")

    def test_import_sku_prefers_seller_sku(self):
        assert import_sku(make_product(seller_sku=" SKU-9 ")) == "SKU-9"

    def test_import_sku_synthetic(self):
        assert import_sku(make_product(product_id="p1", seller_sku=None)) == "remote:p1"
        assert import_sku(make_product(product_id="p1", seller_sku="  ")) == "remote:p1"

    def test_provenance_tags(self):
        assert provenance_tags("p1", "7001") == ["tiktok-shop", "tiktok-shop:7001", "tiktok-product:p1"]
        assert provenance_tags("p1") == ["tiktok-shop", "tiktok-product:p1"]

    def test_merge_tags(self):
        assert merge_tags(["sale", "tiktok-shop"], ["tiktok-shop", "new", ""]) == ["sale", "tiktok-shop", "new"]


class TestValidateProduct:
    def test_valid(self):
        assert validate_product(make_product(price="199.00")) == (19900, None)

    @pytest.mark.parametrize("kwargs,reason", [
        ({"product_id": ""}, "missing remote product id"),
        ({"title": ""}, "missing title"),
        ({"price": None}, "missing price"),
        ({"price": "  "}, "missing price"),
        ({"price": "abc"}, "invalid price 'abc'"),
        ({"price": "0"}, "non-positive price '0'"),
        ({"price": "-3.00"}, "non-positive price '-3.00'"),
    ])
    def test_invalid(self, kwargs, reason):
        assert validate_product(make_product(**kwargs)) == (None, reason)


class TestReconcile:
    def test_creates_new_products(self, reconciler, repository):
        result = reconciler.reconcile([make_product("p1", seller_sku="A"), make_product("p2", seller_sku="B")], "7001")
        assert (result.created, result.updated, result.skipped) == (2, 0, 0)
        entries = {e.sku: e for e in repository.list_products()}
        assert entries["A"].price == 1000
        assert entries["A"].active is True
        assert entries["A"].status == "published"
        assert entries["A"].tags == ["tiktok-shop", "tiktok-shop:7001", "tiktok-product:p1"]

    def test_second_run_updates_in_place(self, reconciler, repository):
        products = [make_product(f"p{n}", seller_sku=f"S{n}") for n in range(3)]
        first = reconciler.reconcile(products, "7001")
        second = reconciler.reconcile(products, "7001")
        assert (first.created, first.updated) == (3, 0)
        assert (second.created, second.updated) == (0, 3)
        assert len(repository) == 3

    def test_matches_existing_sku_case_insensitively(self, repository, reconciler):
        repository.create(LocalCatalogEntry(sku="abc-1", name="Old", price=100, tags=["manual"]))
        result = reconciler.reconcile([make_product("p1", title="New", price="5.00", seller_sku="ABC-1 ")])
        assert result.updated == 1
        entry = repository.list_products()[0]
        assert entry.name == "New"
        assert entry.price == 500
        assert entry.sku == "abc-1"
        assert entry.tags == ["manual", "tiktok-shop", "tiktok-product:p1"]

    def test_missing_seller_sku_uses_remote_id(self, reconciler, repository):
        reconciler.reconcile([make_product("p1", seller_sku=None)])
        assert repository.list_products()[0].sku == "remote:p1"

        again = reconciler.reconcile([make_product("p1", seller_sku=None, price="12.00")])
        assert (again.created, again.updated) == (0, 1)
        assert repository.list_products()[0].price == 1200

    def test_inactive_status_imported_as_draft(self, reconciler, repository):
        reconciler.reconcile([make_product(status="SELLER_DEACTIVATED")])
        entry = repository.list_products()[0]
        assert entry.active is False
        assert entry.status == "draft"

    def test_invalid_products_skipped_with_reason(self, reconciler, repository):
        result = reconciler.reconcile([
            make_product("p1", seller_sku="A", price="99.99"),
            make_product("p2", seller_sku="B", price=""),
        ])
        assert (result.created, result.skipped) == (1, 1)
        assert result.failures[0].product_id == "p2"
        assert "price" in result.failures[0].reason
        assert len(repository) == 1

    @pytest.mark.parametrize("price", ["1e30", "1E+999999"])
    def test_out_of_range_price_skipped(self, reconciler, repository, price):
        result = reconciler.reconcile([
            make_product("big", seller_sku="BIG", price=price),
            make_product("ok", seller_sku="OK", price="9.99"),
        ])
        assert (result.created, result.skipped) == (1, 1)
        assert result.failures[0].reason == f"invalid price {price!r}"
        assert [e.sku for e in repository.list_products()] == ["OK"]

    def test_validation_error_becomes_skip(self, reconciler):
        with patch("shopsync.catalog.reconciler.price_to_cents", side_effect=ValueError("boom")):
            result = reconciler.reconcile([make_product("p1")])
        assert result.skipped == 1
        assert result.failures[0].reason == "invalid product: ValueError"

    def test_duplicate_sku_in_batch_creates_once(self, reconciler, repository):
        result = reconciler.reconcile([
            make_product("p1", seller_sku="DUP", price="1.00"),
            make_product("p2", seller_sku="dup", price="2.00"),
        ])
        assert (result.created, result.updated) == (1, 1)
        assert repository.list_products()[0].price == 200

    def test_index_built_once_per_batch(self, reconciler, repository):
        products = [make_product(f"p{n}", seller_sku=f"S{n}") for n in range(5)]
        with patch.object(repository, "list_products", wraps=repository.list_products) as mock_list:
            reconciler.reconcile(products)
        mock_list.assert_called_once()

    def test_persistence_error_becomes_skip(self):
        repository = MagicMock()
        repository.list_products.return_value = []
        repository.create.side_effect = [PersistenceError("disk full"), LocalCatalogEntry("B", "B", 1, id="x")]
        result = ProductReconciler(repository).reconcile([
            make_product("p1", seller_sku="A"),
            make_product("p2", seller_sku="B"),
        ])
        assert result.success is True
        assert (result.created, result.skipped) == (1, 1)
        assert result.failures[0].reason == "disk full"

    def test_failures_capped(self, reconciler):
        products = [make_product(f"p{n}", price="") for n in range(MAX_FAILURES + 10)]
        result = reconciler.reconcile(products)
        assert result.skipped == MAX_FAILURES + 10
        assert len(result.failures) == MAX_FAILURES


class TestDryRun:
    def test_never_writes(self):
        repository = MagicMock()
        repository.list_products.return_value = [LocalCatalogEntry("A", "Old", 100, id="prod-1")]
        result = ProductReconciler(repository).reconcile(
            [make_product("p1", seller_sku="A"), make_product("p2", seller_sku="B")], dry_run=True
        )
        assert result.dry_run is True
        assert (result.created, result.updated) == (1, 1)
        repository.create.assert_not_called()
        repository.update.assert_not_called()

    def test_matches_commit_counts(self):
        products = [
            make_product("p1", seller_sku="A"),
            make_product("p2", seller_sku="a"),
            make_product("p3", seller_sku="B", price="x"),
        ]
        dry = ProductReconciler(InMemoryCatalogRepository()).reconcile(products, dry_run=True)
        commit = ProductReconciler(InMemoryCatalogRepository()).reconcile(products)
        assert (dry.created, dry.updated, dry.skipped) == (commit.created, commit.updated, commit.skipped)

    def test_repository_entries_untouched(self, repository, reconciler):
        repository.create(LocalCatalogEntry(sku="A", name="Old", price=100))
        reconciler.reconcile([make_product("p1", title="New", seller_sku="A")], dry_run=True)
        assert repository.list_products()[0].name == "Old"

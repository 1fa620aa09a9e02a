"""
Product Reconciler

Idempotently merges one batch of remote products into the local catalog.
Products are matched by normalized SKU against an index built once per
batch. Problems with a single product are recorded as skips; they never
abort the batch.
"""

from __future__ import annotations

import copy
import logging
from typing import Iterable

from ..common.constants import (
    ACTIVE_STATUSES,
    LOCAL_STATUS_DRAFT,
    LOCAL_STATUS_PUBLISHED,
    MAX_FAILURES,
    PRODUCT_TAG_PREFIX,
    PROVENANCE_TAG,
    SHOP_TAG_PREFIX,
    SYNTHETIC_SKU_PREFIX,
)
from ..common.pricing import price_to_cents
from ..models import ImportFailure, ImportResult, LocalCatalogEntry, RemoteProductPreview
from .repository import CatalogRepository

logger = logging.getLogger(__name__)


def normalize_sku(sku: str | None) -> str:
    return (sku or "").strip().lower()


def map_status(remote_status: str | None) -> tuple[bool, str]:
    """
    Map a remote status to (active, local status).

    Unknown statuses map to a draft so nothing is published by accident.
    """
    if (remote_status or "").strip().lower() in ACTIVE_STATUSES:
        return True, LOCAL_STATUS_PUBLISHED
    return False, LOCAL_STATUS_DRAFT


def import_sku(product: RemoteProductPreview) -> str:
    """Seller SKU, or remote:<id> when the listing has none."""
    if product.seller_sku and product.seller_sku.strip():
        return product.seller_sku.strip()
    return f"{SYNTHETIC_SKU_PREFIX}{product.id}"


def provenance_tags(product_id: str, shop_id: str | None = None) -> list[str]:
    tags = [PROVENANCE_TAG]
    if shop_id:
        tags.append(f"{SHOP_TAG_PREFIX}{shop_id}")
    tags.append(f"{PRODUCT_TAG_PREFIX}{product_id}")
    return tags


def merge_tags(existing: Iterable[str], extra: Iterable[str]) -> list[str]:
    """Union of both tag lists, order preserved, duplicates dropped."""
    merged: list[str] = []
    seen: set[str] = set()
    for tag in list(existing) + list(extra):
        tag = (tag or "").strip()
        if tag and tag not in seen:
            seen.add(tag)
            merged.append(tag)
    return merged


def validate_product(product: RemoteProductPreview) -> tuple[int | None, str | None]:
    """
    Check a remote product is importable.

    Returns:
        (price_cents, None) when valid, (None, reason) otherwise
    """
    if not product.id:
        return None, "missing remote product id"
    if not product.title:
        return None, "missing title"
    if product.price is None or not str(product.price).strip():
        return None, "missing price"
    cents = price_to_cents(product.price, product.currency)
    if cents is None:
        return None, f"invalid price {product.price!r}"
    if cents <= 0:
        return None, f"non-positive price {product.price!r}"
    return cents, None


class _BatchOutcome:
    """Mutable counters for one batch; frozen into an ImportResult at the end."""

    def __init__(self, dry_run: bool):
        self.dry_run = dry_run
        self.created = 0
        self.updated = 0
        self.skipped = 0
        self.failures: list[ImportFailure] = []

    def skip(self, product_id: str, reason: str) -> None:
        self.skipped += 1
        if len(self.failures) < MAX_FAILURES:
            self.failures.append(ImportFailure(product_id=product_id, reason=reason))

    def result(self) -> ImportResult:
        return ImportResult(
            success=True,
            dry_run=self.dry_run,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            failures=list(self.failures),
        )


class ProductReconciler:
    """
    Create-or-update remote products into the local catalog by SKU.

    Usage:
        reconciler = ProductReconciler(repository)
        result = reconciler.reconcile(page.products, shop_id="7000001", dry_run=True)
        print(result.created, result.updated, result.skipped)
    """

    def __init__(self, repository: CatalogRepository):
        self.repository = repository

    def build_index(self) -> dict[str, LocalCatalogEntry]:
        """Index the full local catalog by normalized SKU (one listing call)."""
        index: dict[str, LocalCatalogEntry] = {}
        for entry in self.repository.list_products():
            key = normalize_sku(entry.sku)
            if key and key not in index:
                index[key] = entry
        return index

    def reconcile(
        self,
        products: Iterable[RemoteProductPreview],
        shop_id: str | None = None,
        dry_run: bool = False,
    ) -> ImportResult:
        """
        Merge a batch of remote products.

        In dry-run mode only the in-memory index changes, so later products
        in the same batch see the intended state; the repository is never
        written.
        """
        products = list(products)
        outcome = _BatchOutcome(dry_run)
        index = self.build_index()
        if dry_run:
            index = copy.deepcopy(index)

        for product in products:
            self._reconcile_one(product, index, outcome, shop_id, dry_run)

        result = outcome.result()
        logger.info(
            "%s %d product(s): created=%d updated=%d skipped=%d",
            "Dry run over" if dry_run else "Imported",
            len(products), result.created, result.updated, result.skipped,
        )
        return result

    def _reconcile_one(
        self,
        product: RemoteProductPreview,
        index: dict[str, LocalCatalogEntry],
        outcome: _BatchOutcome,
        shop_id: str | None,
        dry_run: bool,
    ) -> None:
        product_id = product.id or "(unknown)"
        try:
            price, reason = validate_product(product)
        except Exception as e:
            price, reason = None, f"invalid product: {e.__class__.__name__}"
        if reason:
            logger.debug("Skipping %s: %s", product_id, reason)
            outcome.skip(product_id, reason)
            return

        sku = import_sku(product)
        key = normalize_sku(sku)
        active, status = map_status(product.status)
        tags = provenance_tags(product.id, shop_id)
        existing = index.get(key)

        try:
            if existing is not None:
                partial = {
                    "name": product.title,
                    "price": price,
                    "active": active,
                    "status": status,
                    "tags": merge_tags(existing.tags, tags),
                }
                if dry_run:
                    for field_name, value in partial.items():
                        setattr(existing, field_name, value)
                else:
                    index[key] = self.repository.update(existing.id, partial)
                outcome.updated += 1
            else:
                entry = LocalCatalogEntry(
                    sku=sku,
                    name=product.title,
                    price=price,
                    active=active,
                    status=status,
                    tags=merge_tags([], tags),
                )
                if dry_run:
                    entry.id = f"dry-run:{key}"
                    index[key] = entry
                else:
                    index[key] = self.repository.create(entry)
                outcome.created += 1
        except Exception as e:
            logger.warning("Failed to save product %s (sku=%s): %s", product_id, sku, e)
            outcome.skip(product_id, str(e) or e.__class__.__name__)

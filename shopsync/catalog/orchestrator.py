"""
Sync Orchestrator

Drives the pager and the reconciler across many pages under explicit
budgets. Every run terminates: page and product budgets bound the work and
a repeated cursor stops the loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..common.constants import MAX_FAILURES, MAX_PAGES_BOUNDS, MAX_PRODUCTS_BOUNDS, PAGE_SIZE_BOUNDS
from ..common.errors import PersistenceError, SyncError
from ..common.limits import clamp_int
from ..models import AuthorizedShop, BulkImportResult, ImportResult
from .reconciler import ProductReconciler

if TYPE_CHECKING:
    from ..tiktok.pager import CatalogPager

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Bulk import of a remote catalog, one page at a time.

    Usage:
        orchestrator = SyncOrchestrator(pager, reconciler)
        result = orchestrator.run(shop, page_size=50, max_pages=20, max_products=500)
        if result.truncated and result.next_page_token:
            orchestrator.run(shop, page_token=result.next_page_token)  # resume
    """

    def __init__(self, pager: "CatalogPager", reconciler: ProductReconciler):
        self.pager = pager
        self.reconciler = reconciler

    def run(
        self,
        shop: AuthorizedShop,
        page_size: int | None = None,
        max_pages: int | None = None,
        max_products: int | None = None,
        dry_run: bool = False,
        page_token: str | None = "",
    ) -> BulkImportResult:
        """
        Import pages until the catalog ends, a budget runs out or a cursor repeats.

        Args:
            shop: Bound shop (cipher used for fetches, id for provenance tags)
            page_size: Products per page, clamped to [1, 100]
            max_pages: Page budget, clamped to [1, 200]
            max_products: Product budget, clamped to [1, 10000]
            dry_run: Report intended changes without writing
            page_token: Cursor to resume from ("" starts at the beginning)

        Returns:
            BulkImportResult; on a page-level error success is False and
            error is set, with counts from the pages already reconciled
        """
        page_size = clamp_int(page_size, PAGE_SIZE_BOUNDS)
        max_pages = clamp_int(max_pages, MAX_PAGES_BOUNDS)
        max_products = clamp_int(max_products, MAX_PRODUCTS_BOUNDS)

        result = BulkImportResult(dry_run=dry_run)

        logger.info(
            "Starting %s import for shop %s (page_size=%d, max_pages=%d, max_products=%d)",
            "dry-run" if dry_run else "commit", shop.cipher, page_size, max_pages, max_products,
        )

        try:
            self._run_pages(result, shop, page_size, max_pages, max_products, dry_run, page_token or "")
        except (SyncError, PersistenceError) as e:
            # next_page_token still points at the page that failed
            logger.error("Import stopped on page %d: %s", result.pages_fetched + 1, e)
            result.success = False
            result.error = str(e)
            return result

        logger.info(
            "Import finished: pages=%d products=%d created=%d updated=%d skipped=%d truncated=%s",
            result.pages_fetched, result.products_fetched, result.created,
            result.updated, result.skipped, result.truncated,
        )
        return result

    def _run_pages(
        self,
        result: BulkImportResult,
        shop: AuthorizedShop,
        page_size: int,
        max_pages: int,
        max_products: int,
        dry_run: bool,
        current_token: str,
    ) -> None:
        previous_token: str | None = None

        while True:
            result.next_page_token = current_token or None
            page = self.pager.fetch_page(
                shop.cipher, page_size=page_size, page_token=current_token, persist=not dry_run
            )
            result.pages_fetched += 1
            remaining = max_products - result.products_fetched
            products = page.products

            if len(products) > remaining:
                products = products[:remaining]
                self._absorb(result, self.reconciler.reconcile(products, shop.id, dry_run))
                result.products_fetched += len(products)
                result.truncated = True
                result.next_page_token = page.next_page_token
                logger.info("Product budget reached mid-page; truncated to %d product(s)", len(products))
                return

            self._absorb(result, self.reconciler.reconcile(products, shop.id, dry_run))
            result.products_fetched += len(products)
            next_token = page.next_page_token

            if not next_token:
                result.next_page_token = None
                return

            if next_token == current_token or next_token == previous_token:
                logger.warning("Cursor repeated (%r); stopping to avoid a loop", next_token)
                result.truncated = True
                result.next_page_token = None
                return

            if result.pages_fetched >= max_pages or result.products_fetched >= max_products:
                logger.info("Budget reached after %d page(s), %d product(s)",
                            result.pages_fetched, result.products_fetched)
                result.truncated = True
                result.next_page_token = next_token
                return

            previous_token, current_token = current_token, next_token

    @staticmethod
    def _absorb(total: BulkImportResult, page_result: ImportResult) -> None:
        total.created += page_result.created
        total.updated += page_result.updated
        total.skipped += page_result.skipped
        room = MAX_FAILURES - len(total.failures)
        if room > 0:
            total.failures.extend(page_result.failures[:room])

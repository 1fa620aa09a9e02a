"""
TikTok Shop Service

Operator-facing facade over the sync engine. Wires the provider, auth
gateway, shop directory, pager, reconciler, orchestrator and run ledger
together, and turns every failure into a result object.

The provider (live API or in-memory fixture) is chosen once, when the
service is built.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from .catalog.ledger import RunLedger, entry_from_result
from .catalog.orchestrator import SyncOrchestrator
from .catalog.reconciler import ProductReconciler
from .catalog.repository import CatalogRepository, SettingsStore
from .common.config_loader import SyncSettings
from .common.encryption import SecretBox
from .common.errors import PersistenceError, SyncError
from .models import (
    SCOPE_BULK,
    SCOPE_PAGE,
    AuthorizedShop,
    BulkImportResult,
    ConfigSummary,
    ImportResult,
    PageImportResult,
    RemoteProductPreview,
    RunLedgerEntry,
)
from .tiktok.api_client import TikTokAPIClient
from .tiktok.auth import AuthGateway
from .tiktok.fixture_provider import FixtureCatalogProvider
from .tiktok.pager import CatalogPager
from .tiktok.provider import RemoteCatalogProvider
from .tiktok.shops import ShopDirectory

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    success: bool
    error: str | None = None
    summary: ConfigSummary | None = None


@dataclass
class ShopsResult:
    success: bool
    shops: list[AuthorizedShop] = field(default_factory=list)
    selected: AuthorizedShop | None = None
    error: str | None = None


@dataclass
class VerifyResult:
    success: bool
    shop_name: str | None = None
    error: str | None = None


@dataclass
class PreviewResult:
    success: bool
    shop: AuthorizedShop | None = None
    products: list[RemoteProductPreview] = field(default_factory=list)
    total_count: int | None = None
    next_page_token: str | None = None
    error: str | None = None


def build_provider(settings: SyncSettings) -> RemoteCatalogProvider:
    """Pick the provider implementation for these settings."""
    if settings.use_fixture:
        logger.info("Using in-memory fixture provider")
        return FixtureCatalogProvider()
    return TikTokAPIClient(
        open_api_base_url=settings.open_api_base_url,
        auth_base_url=settings.auth_base_url,
        timeout=settings.request_timeout,
    )


class TikTokShopService:
    """
    Operator surface of the sync engine.

    Usage:
        service = TikTokShopService.build(settings, store, repository)
        service.configure(app_key="key", app_secret="secret")
        service.exchange_code("auth-code")
        result = service.import_all(max_products=500, dry_run=True)
        for entry in service.run_history():
            print(entry.scope, entry.mode, entry.created, entry.updated)
    """

    def __init__(
        self,
        settings: SyncSettings,
        store: SettingsStore,
        repository: CatalogRepository,
        secrets: SecretBox,
        provider: RemoteCatalogProvider,
    ):
        self.settings = settings
        self.provider = provider
        self.gateway = AuthGateway(
            store,
            secrets,
            provider,
            cache_ttl=settings.cache_ttl_seconds,
            auth_base_url=settings.auth_base_url,
        )
        self.shops = ShopDirectory(self.gateway, provider)
        self.pager = CatalogPager(self.gateway, provider)
        self.reconciler = ProductReconciler(repository)
        self.orchestrator = SyncOrchestrator(self.pager, self.reconciler)
        self.ledger = RunLedger(store, cap=settings.ledger_cap)

    @classmethod
    def build(
        cls,
        settings: SyncSettings,
        store: SettingsStore,
        repository: CatalogRepository,
        secrets: SecretBox | None = None,
        provider: RemoteCatalogProvider | None = None,
    ) -> "TikTokShopService":
        return cls(
            settings,
            store,
            repository,
            secrets or SecretBox.from_env(),
            provider or build_provider(settings),
        )

    def close(self) -> None:
        self.provider.close()

    # ── Configuration & auth ──────────────────────────────────────────────────

    def config_summary(self) -> ConfigSummary:
        return self.gateway.summary()

    def configure(self, **fields) -> ConfigSummary:
        self.gateway.configure_app(**fields)
        return self.gateway.summary()

    def build_authorize_url(self, state: str | None = None, redirect_uri: str | None = None) -> tuple[str, str]:
        """Return (authorize_url, state)."""
        state = state or uuid.uuid4().hex
        return self.gateway.build_authorize_url(state, redirect_uri), state

    def exchange_code(self, code: str) -> OperationResult:
        try:
            self.gateway.exchange_authorization_code(code)
        except SyncError as e:
            logger.error("Authorization code exchange failed: %s", e)
            return OperationResult(success=False, error=str(e))
        return OperationResult(success=True, summary=self.gateway.summary())

    def refresh_access_token(self) -> OperationResult:
        try:
            self.gateway.refresh()
        except SyncError as e:
            logger.error("Token refresh failed: %s", e)
            return OperationResult(success=False, error=str(e))
        return OperationResult(success=True, summary=self.gateway.summary())

    def verify(self) -> VerifyResult:
        """Check the stored credentials by listing authorized shops."""
        try:
            shops = self.shops.list_shops()
        except SyncError as e:
            return VerifyResult(success=False, error=str(e))
        if not shops:
            return VerifyResult(success=False, error="No authorized shops for these credentials")
        return VerifyResult(success=True, shop_name=shops[0].name)

    def disconnect(self) -> None:
        self.gateway.disconnect()

    # ── Shops ─────────────────────────────────────────────────────────────────

    def sync_authorized_shops(self) -> ShopsResult:
        try:
            shops, selected = self.shops.sync()
        except SyncError as e:
            return ShopsResult(success=False, error=str(e))
        return ShopsResult(success=True, shops=shops, selected=selected)

    def select_shop(self, shop_cipher: str) -> ShopsResult:
        try:
            selected = self.shops.select_shop(shop_cipher)
        except SyncError as e:
            return ShopsResult(success=False, error=str(e))
        return ShopsResult(success=True, selected=selected)

    # ── Products ──────────────────────────────────────────────────────────────

    def preview_products(self, page_size: int | None = None, page_token: str | None = None) -> PreviewResult:
        """Fetch one page for display. Nothing is imported or recorded."""
        try:
            shop = self.shops.resolve()
            page = self.pager.fetch_page(
                shop.cipher, page_size=page_size or self.settings.default_page_size, page_token=page_token
            )
        except SyncError as e:
            return PreviewResult(success=False, error=str(e))
        return PreviewResult(
            success=True,
            shop=shop,
            products=page.products,
            total_count=page.total_count,
            next_page_token=page.next_page_token,
        )

    def import_page(
        self,
        page_size: int | None = None,
        page_token: str | None = None,
        dry_run: bool = False,
    ) -> PageImportResult:
        """Fetch one page and reconcile it."""
        started_at = datetime.now(timezone.utc)
        result = PageImportResult(dry_run=dry_run)
        shop_cipher = None
        try:
            shop = self.shops.resolve(persist=not dry_run)
            shop_cipher = shop.cipher
            page = self.pager.fetch_page(
                shop.cipher,
                page_size=page_size or self.settings.default_page_size,
                page_token=page_token,
                persist=not dry_run,
            )
            batch = self.reconciler.reconcile(page.products, shop.id, dry_run)
            result = PageImportResult(
                dry_run=dry_run,
                created=batch.created,
                updated=batch.updated,
                skipped=batch.skipped,
                failures=batch.failures,
                products_fetched=len(page.products),
                total_count=page.total_count,
                next_page_token=page.next_page_token,
            )
        except (SyncError, PersistenceError) as e:
            logger.error("Page import failed: %s", e)
            result.success = False
            result.error = str(e)
        finally:
            if dry_run:
                self.gateway.discard_session_tokens()

        self.ledger.record(entry_from_result(
            SCOPE_PAGE, result, started_at,
            page_token=page_token,
            next_page_token=result.next_page_token,
            pages_fetched=1 if result.success else 0,
            shop_cipher=shop_cipher,
        ))
        return result

    def import_products(
        self,
        products: Iterable[RemoteProductPreview],
        dry_run: bool = False,
    ) -> ImportResult:
        """Reconcile products the operator already holds (e.g. from a preview)."""
        started_at = datetime.now(timezone.utc)
        bound = self.shops.bound_shop()
        try:
            result = self.reconciler.reconcile(products, bound.id if bound else None, dry_run)
        except PersistenceError as e:
            logger.error("Product import failed: %s", e)
            result = ImportResult(success=False, dry_run=dry_run, error=str(e))

        self.ledger.record(entry_from_result(
            SCOPE_PAGE, result, started_at,
            shop_cipher=bound.cipher if bound else None,
        ))
        return result

    def import_all(
        self,
        page_size: int | None = None,
        max_pages: int | None = None,
        max_products: int | None = None,
        dry_run: bool = False,
        page_token: str | None = None,
    ) -> BulkImportResult:
        """Import the whole remote catalog under the given budgets."""
        started_at = datetime.now(timezone.utc)
        shop_cipher = None
        try:
            shop = self.shops.resolve(persist=not dry_run)
            shop_cipher = shop.cipher
            result = self.orchestrator.run(
                shop,
                page_size=page_size or self.settings.default_page_size,
                max_pages=max_pages or self.settings.default_max_pages,
                max_products=max_products or self.settings.default_max_products,
                dry_run=dry_run,
                page_token=page_token,
            )
        except SyncError as e:
            logger.error("Bulk import failed before the first page: %s", e)
            result = BulkImportResult(success=False, dry_run=dry_run, error=str(e))
        finally:
            if dry_run:
                self.gateway.discard_session_tokens()

        self.ledger.record(entry_from_result(
            SCOPE_BULK, result, started_at, page_token=page_token, shop_cipher=shop_cipher,
        ))
        return result

    def run_history(self, limit: int | None = None) -> list[RunLedgerEntry]:
        return self.ledger.history(limit)

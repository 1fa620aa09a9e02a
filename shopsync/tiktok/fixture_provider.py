"""
Deterministic in-memory provider.

Stands in for the live TikTok Shop API in demos, local runs and tests.
It keeps the same contract as TikTokAPIClient: tokens are validated,
pages are cursor based, and failures surface as the same exceptions.
"""

from __future__ import annotations

import logging
from typing import Any

from ..common.errors import AuthError, ProviderError
from ..models import AuthorizedShop, TokenPayload
from .provider import RawProductPage, RemoteCatalogProvider

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL = 7 * 24 * 3600
REFRESH_TOKEN_TTL = 365 * 24 * 3600


def default_fixture_shops() -> list[AuthorizedShop]:
    return [
        AuthorizedShop(id="7000000000001", cipher="fixture-cipher-1", name="Fixture Shop US",
                       region="US", code="USFIX1", seller_type="LOCAL"),
        AuthorizedShop(id="7000000000002", cipher="fixture-cipher-2", name="Fixture Shop GB",
                       region="GB", code="GBFIX2", seller_type="LOCAL"),
    ]


def default_fixture_products() -> list[dict[str, Any]]:
    return [
        {
            "id": f"fixture-{n}",
            "title": f"Fixture Product {n}",
            "status": "ACTIVATE" if n % 3 else "DRAFT",
            "sales_regions": ["US"],
            "update_time": 1700000000 + n,
            "skus": [{
                "id": f"fixture-sku-{n}",
                "seller_sku": f"FIX-{n:03d}",
                "price": {"amount": f"{n * 5}.99", "currency": "USD"},
            }],
        }
        for n in range(1, 13)
    ]


class FixtureCatalogProvider(RemoteCatalogProvider):
    """
    In-memory marketplace.

    A code exchange issues a new token pair. A refresh issues a new access
    token and keeps the refresh token, as the live API does.

    Usage:
        provider = FixtureCatalogProvider(app_key="key", app_secret="secret")
        tokens = provider.exchange_code("key", "secret", "any-code")
        provider.expire_access_token()  # next call with the old token fails with AuthError
    """

    def __init__(
        self,
        app_key: str | None = None,
        app_secret: str | None = None,
        shops: list[AuthorizedShop] | None = None,
        products: dict[str, list[dict[str, Any]]] | list[dict[str, Any]] | None = None,
    ) -> None:
        self.app_key = app_key
        self.app_secret = app_secret
        self.shops = list(shops) if shops is not None else default_fixture_shops()

        # Products keyed by shop cipher. A plain list is served to every shop.
        if products is None:
            products = default_fixture_products()
        self._products_by_shop = products if isinstance(products, dict) else None
        self._shared_products = products if isinstance(products, list) else []

        self._generation = 0
        self._fresh = True
        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.calls: list[str] = []

    # ── Token handling ────────────────────────────────────────────────────────

    def _check_app(self, app_key: str, app_secret: str) -> None:
        if self.app_key is not None and app_key != self.app_key:
            raise ProviderError("Invalid app_key", code=100001)
        if self.app_secret is not None and app_secret != self.app_secret:
            raise ProviderError("Invalid app_secret", code=100002)

    def _issue_tokens(self, rotate_refresh: bool = True) -> TokenPayload:
        self._generation += 1
        self._fresh = False
        self.access_token = f"fixture-access-{self._generation}"
        if rotate_refresh or not self.refresh_token:
            self.refresh_token = f"fixture-refresh-{self._generation}"
        return TokenPayload(
            access_token=self.access_token,
            access_token_expire_in=ACCESS_TOKEN_TTL,
            refresh_token=self.refresh_token,
            refresh_token_expire_in=REFRESH_TOKEN_TTL,
            open_id="fixture-open-id",
            seller_name="Fixture Seller",
            seller_base_region="US",
            granted_scopes=["seller.product.basic", "seller.authorization.info"],
        )

    def _adopt(self, access_token: str | None, refresh_token: str | None) -> None:
        # A fresh provider (new process) accepts tokens it issued in an earlier run
        if not self._fresh:
            return
        if access_token and self.access_token is None and access_token.startswith("fixture-access-"):
            self.access_token = access_token
        if refresh_token and self.refresh_token is None and refresh_token.startswith("fixture-refresh-"):
            self.refresh_token = refresh_token

    def _check_access(self, access_token: str) -> None:
        self._adopt(access_token, None)
        if not self.access_token or access_token != self.access_token:
            raise AuthError("Access token is invalid", code=105002, status=200)

    def expire_access_token(self) -> None:
        """Invalidate the current access token; the refresh token stays valid."""
        self._fresh = False
        self.access_token = None

    def revoke_all_tokens(self) -> None:
        """Invalidate both tokens, forcing a new authorization code."""
        self._fresh = False
        self.access_token = None
        self.refresh_token = None

    # ── RemoteCatalogProvider ─────────────────────────────────────────────────

    def exchange_code(self, app_key: str, app_secret: str, auth_code: str) -> TokenPayload:
        self.calls.append("exchange_code")
        self._check_app(app_key, app_secret)
        if not auth_code:
            raise ProviderError("Invalid auth_code", code=36004001)
        return self._issue_tokens()

    def refresh(self, app_key: str, app_secret: str, refresh_token: str) -> TokenPayload:
        self.calls.append("refresh")
        self._check_app(app_key, app_secret)
        self._adopt(None, refresh_token)
        if not self.refresh_token or refresh_token != self.refresh_token:
            raise AuthError("Refresh token is invalid", code=105003, status=200)
        return self._issue_tokens(rotate_refresh=False)

    def list_shops(self, app_key: str, app_secret: str, access_token: str) -> list[AuthorizedShop]:
        self.calls.append("list_shops")
        self._check_app(app_key, app_secret)
        self._check_access(access_token)
        return list(self.shops)

    def products_for(self, shop_cipher: str) -> list[dict[str, Any]]:
        if self._products_by_shop is not None:
            return self._products_by_shop.get(shop_cipher, [])
        return self._shared_products

    def search_products(
        self,
        app_key: str,
        app_secret: str,
        access_token: str,
        shop_cipher: str,
        page_size: int,
        page_token: str = "",
    ) -> RawProductPage:
        self.calls.append("search_products")
        self._check_app(app_key, app_secret)
        self._check_access(access_token)
        if shop_cipher not in {shop.cipher for shop in self.shops}:
            raise ProviderError("Shop cipher is not authorized", code=105005)

        try:
            offset = int(page_token) if page_token else 0
        except ValueError:
            raise ProviderError(f"Invalid page_token: {page_token}", code=12019001) from None

        products = self.products_for(shop_cipher)
        page = products[offset:offset + page_size]
        end = offset + len(page)
        return RawProductPage(
            products=[dict(p) for p in page],
            total_count=len(products),
            next_page_token=str(end) if end < len(products) else None,
        )

"""
Catalog Pager

Fetches one page of remote product listings and normalizes each listing
into a RemoteProductPreview. Prices stay as the provider's decimal strings;
common.pricing.price_to_cents() converts them during reconciliation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..common.constants import PAGE_SIZE_BOUNDS
from ..common.limits import clamp_int
from ..models import CatalogPage, RemoteProductPreview
from .auth import AuthGateway
from .provider import RemoteCatalogProvider

logger = logging.getLogger(__name__)


def from_unix_timestamp(value: Any) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        # Millisecond or otherwise out-of-range values
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_product(raw: dict[str, Any]) -> RemoteProductPreview:
    """Flatten one remote product (first SKU only)."""
    skus = raw.get("skus")
    first_sku = skus[0] if isinstance(skus, list) and skus and isinstance(skus[0], dict) else {}
    price = first_sku.get("price")
    if not isinstance(price, dict):
        price = {}
    regions = raw.get("sales_regions")
    region = regions[0] if isinstance(regions, list) and regions else None

    return RemoteProductPreview(
        id=str(raw.get("id") or raw.get("product_id") or "").strip(),
        title=str(raw.get("title") or raw.get("name") or "").strip(),
        status=str(raw.get("status") or "").strip(),
        sku_id=_optional_str(first_sku.get("id") or first_sku.get("sku_id")),
        seller_sku=_optional_str(first_sku.get("seller_sku")),
        price=_optional_str(price.get("amount")),
        currency=_optional_str(price.get("currency")),
        region=_optional_str(region),
        updated_at=from_unix_timestamp(raw.get("update_time")),
    )


class CatalogPager:
    """
    Fetches exactly one page of remote products per call.

    Usage:
        pager = CatalogPager(gateway, provider)
        page = pager.fetch_page("shop-cipher", page_size=50)
        while page.next_page_token:
            page = pager.fetch_page("shop-cipher", page_size=50, page_token=page.next_page_token)
    """

    def __init__(self, gateway: AuthGateway, provider: RemoteCatalogProvider):
        self.gateway = gateway
        self.provider = provider

    def fetch_page(
        self,
        shop_cipher: str,
        page_size: Any = None,
        page_token: str | None = "",
        persist: bool = True,
    ) -> CatalogPage:
        """
        Fetch one page of products.

        Args:
            shop_cipher: Cipher of the bound shop
            page_size: Clamped to [1, 100], default 20
            page_token: Cursor from the previous page ("" for the first page)
            persist: Whether a token refresh during the call may be persisted

        Returns:
            CatalogPage; next_page_token None means this was the last page
        """
        size = clamp_int(page_size, PAGE_SIZE_BOUNDS)
        token = page_token or ""

        raw_page = self.gateway.authenticated_call(
            lambda app: self.provider.search_products(
                app.app_key, app.app_secret, app.access_token,
                shop_cipher=shop_cipher, page_size=size, page_token=token,
            ),
            persist=persist,
        )

        products = [normalize_product(raw) for raw in raw_page.products if isinstance(raw, dict)]
        logger.info("Fetched %d product(s) (page_token=%r, next=%r)",
                    len(products), token, raw_page.next_page_token)
        return CatalogPage(
            products=products,
            total_count=raw_page.total_count,
            next_page_token=raw_page.next_page_token or None,
        )

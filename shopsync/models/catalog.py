"""
Catalog data models.

Remote shop and product views, local catalog entries, and import results.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class AuthorizedShop:
    """A remote shop authorized under the current credentials."""
    id: str
    cipher: str
    name: str = ""
    region: str = ""
    code: str = ""
    seller_type: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthorizedShop":
        return cls(
            id=str(data.get("id") or ""),
            cipher=str(data.get("cipher") or ""),
            name=str(data.get("name") or data.get("shop_name") or ""),
            region=str(data.get("region") or ""),
            code=str(data.get("code") or ""),
            seller_type=str(data.get("seller_type") or ""),
        )


@dataclass
class RemoteProductPreview:
    """Normalized view of one remote listing (first SKU only)."""
    id: str
    title: str
    status: str = ""
    sku_id: Optional[str] = None
    seller_sku: Optional[str] = None
    price: Optional[str] = None          # Decimal string as sent by the provider
    currency: Optional[str] = None
    region: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass
class CatalogPage:
    """One page of remote products. next_page_token None means last page."""
    products: List[RemoteProductPreview] = field(default_factory=list)
    total_count: Optional[int] = None
    next_page_token: Optional[str] = None


@dataclass
class LocalCatalogEntry:
    """A product in the merchant's own catalog. Price is in cents."""
    sku: str
    name: str
    price: int
    active: bool = False
    status: str = "draft"
    tags: List[str] = field(default_factory=list)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalCatalogEntry":
        return cls(
            sku=data["sku"],
            name=data["name"],
            price=int(data["price"]),
            active=bool(data.get("active", False)),
            status=data.get("status", "draft"),
            tags=list(data.get("tags") or []),
            id=data.get("id"),
        )


@dataclass(frozen=True)
class ImportFailure:
    product_id: str
    reason: str


@dataclass
class ImportResult:
    """Outcome of reconciling one batch of remote products."""
    success: bool = True
    dry_run: bool = False
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failures: List[ImportFailure] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BulkImportResult(ImportResult):
    """Outcome of a multi-page import."""
    pages_fetched: int = 0
    products_fetched: int = 0
    truncated: bool = False
    next_page_token: Optional[str] = None


@dataclass
class PageImportResult(ImportResult):
    """Outcome of fetching and importing a single page."""
    products_fetched: int = 0
    total_count: Optional[int] = None
    next_page_token: Optional[str] = None

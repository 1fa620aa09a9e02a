"""
Remote catalog provider capability.

The sync engine talks to the marketplace only through this interface.
A live signed-HTTP implementation and a deterministic in-memory fixture
implementation are provided; the choice is made once, at construction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import AuthorizedShop, TokenPayload


@dataclass
class RawProductPage:
    """Products exactly as returned by the provider, plus paging data."""
    products: List[Dict[str, Any]] = field(default_factory=list)
    total_count: Optional[int] = None
    next_page_token: Optional[str] = None


class RemoteCatalogProvider(ABC):
    """Capability set the sync engine needs from the marketplace."""

    @abstractmethod
    def exchange_code(self, app_key: str, app_secret: str, auth_code: str) -> TokenPayload:
        raise NotImplementedError

    @abstractmethod
    def refresh(self, app_key: str, app_secret: str, refresh_token: str) -> TokenPayload:
        raise NotImplementedError

    @abstractmethod
    def list_shops(self, app_key: str, app_secret: str, access_token: str) -> List[AuthorizedShop]:
        raise NotImplementedError

    @abstractmethod
    def search_products(
        self,
        app_key: str,
        app_secret: str,
        access_token: str,
        shop_cipher: str,
        page_size: int,
        page_token: str = "",
    ) -> RawProductPage:
        raise NotImplementedError

    def close(self) -> None:
        """Release any held resources."""

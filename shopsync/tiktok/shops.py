"""
Shop Directory

Lists the shops authorized under the current credentials and decides
which one the sync engine is bound to.
"""

import logging
from typing import List, Optional

from ..common.errors import ConfigurationError
from ..models import AuthorizedShop, Credentials
from .auth import AuthGateway
from .provider import RemoteCatalogProvider

logger = logging.getLogger(__name__)


def choose_shop(shops: List[AuthorizedShop], credentials: Credentials) -> Optional[AuthorizedShop]:
    """
    Pick the shop to bind, deterministically.

    Order of preference:
        1. The persisted shop cipher, if still authorized
        2. The persisted shop id (matched against id or code)
        3. The first authorized shop
    """
    if not shops:
        return None

    if credentials.shop_cipher:
        for shop in shops:
            if shop.cipher == credentials.shop_cipher:
                return shop

    if credentials.shop_id:
        for shop in shops:
            if credentials.shop_id in (shop.id, shop.code):
                return shop

    return shops[0]


class ShopDirectory:
    """
    Authorized shop listing and selection.

    Usage:
        directory = ShopDirectory(gateway, provider)
        shop = directory.resolve()    # bound shop, selected and persisted once
        directory.select_shop("cipher")  # explicit operator choice
    """

    def __init__(self, gateway: AuthGateway, provider: RemoteCatalogProvider):
        self.gateway = gateway
        self.provider = provider

    def list_shops(self, persist: bool = True) -> List[AuthorizedShop]:
        """Fetch the authorized shops (signed, authenticated call)."""
        shops = self.gateway.authenticated_call(
            lambda app: self.provider.list_shops(app.app_key, app.app_secret, app.access_token),
            persist=persist,
        )
        logger.info("Found %d authorized shop(s)", len(shops))
        return shops

    def bound_shop(self) -> Optional[AuthorizedShop]:
        """Return the persisted binding without any remote call, if there is one."""
        credentials = self.gateway.credentials()
        if not credentials.shop_cipher:
            return None
        return AuthorizedShop(
            id=credentials.shop_id or "",
            cipher=credentials.shop_cipher,
            name=credentials.shop_name or "",
        )

    def sync(self, persist: bool = True) -> tuple:
        """
        List shops and re-apply the selection rules.

        Returns:
            (shops, selected) where selected may be None if no shop is authorized
        """
        shops = self.list_shops(persist=persist)
        selected = choose_shop(shops, self.gateway.credentials())
        if selected and persist and self._binding_changed(selected):
            self.gateway.bind_shop(selected)
        return shops, selected

    def resolve(self, persist: bool = True) -> AuthorizedShop:
        """
        Return the shop to sync against.

        A persisted cipher is used as-is. Otherwise shops are listed,
        one is chosen and (when persisting) the choice is stored so later
        runs skip the selection.

        Raises:
            ConfigurationError: No shop is authorized
        """
        shop = self.bound_shop()
        if shop is not None:
            return shop

        _, selected = self.sync(persist=persist)
        if selected is None:
            raise ConfigurationError("No authorized TikTok shops found for these credentials")
        return selected

    def select_shop(self, shop_cipher: str) -> AuthorizedShop:
        """
        Bind an explicitly chosen shop.

        Raises:
            ConfigurationError: Empty cipher, or cipher not among authorized shops
        """
        shop_cipher = (shop_cipher or "").strip()
        if not shop_cipher:
            raise ConfigurationError("Shop cipher is required")

        for shop in self.list_shops():
            if shop.cipher == shop_cipher:
                self.gateway.bind_shop(shop)
                return shop
        raise ConfigurationError(f"Shop cipher is not authorized: {shop_cipher}")

    def _binding_changed(self, shop: AuthorizedShop) -> bool:
        credentials = self.gateway.credentials()
        return (credentials.shop_cipher, credentials.shop_id, credentials.shop_name) != (
            shop.cipher, shop.id, shop.name
        )

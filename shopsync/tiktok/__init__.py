"""
TikTok Shop integration modules.

Modules:
    signing - Request signature (HMAC-SHA256) and webhook verification
    envelope - Typed decoding of the {code, message, request_id, data} envelope
    provider - RemoteCatalogProvider capability
    api_client - Live signed-HTTP provider
    fixture_provider - Deterministic in-memory provider
    auth - Token lifecycle and authenticated calls
    shops - Authorized shop listing and selection
    pager - One-page product fetch and normalization
"""

from .api_client import TikTokAPIClient
from .auth import AppCredentials, AuthGateway, AuthState
from .fixture_provider import FixtureCatalogProvider
from .pager import CatalogPager, normalize_product
from .provider import RawProductPage, RemoteCatalogProvider
from .shops import ShopDirectory, choose_shop
from .signing import build_signature, verify_webhook_signature

__all__ = [
    # Providers
    'RemoteCatalogProvider',
    'RawProductPage',
    'TikTokAPIClient',
    'FixtureCatalogProvider',
    # Auth
    'AuthGateway',
    'AuthState',
    'AppCredentials',
    # Shops and products
    'ShopDirectory',
    'choose_shop',
    'CatalogPager',
    'normalize_product',
    # Signing
    'build_signature',
    'verify_webhook_signature',
]

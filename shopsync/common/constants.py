"""
Shared constants for the sync engine.

Single source of truth for provider endpoints, budget bounds and
status vocabularies.
"""

# Provider hosts (overridable via config/tiktok_shop.yaml or environment)
DEFAULT_OPEN_API_BASE_URL = "https://open-api.tiktokglobalshop.com"
DEFAULT_AUTH_BASE_URL = "https://auth.tiktok-shops.com"

# Endpoints
TOKEN_GET_PATH = "/api/v2/token/get"
TOKEN_REFRESH_PATH = "/api/v2/token/refresh"
AUTHORIZE_PATH = "/oauth/authorize"
AUTHORIZED_SHOPS_PATH = "/authorization/202309/shops"
PRODUCT_SEARCH_PATH = "/product/202309/products/search"

ACCESS_TOKEN_HEADER = "x-tts-access-token"

# Query keys that never take part in the request signature
UNSIGNED_QUERY_KEYS = frozenset({"sign", "access_token"})

# Envelope codes meaning the access token was rejected
AUTH_ERROR_CODES = frozenset({105001, 105002, 105003, 36004004})

# Budget bounds: (min, max, default)
PAGE_SIZE_BOUNDS = (1, 100, 20)
MAX_PAGES_BOUNDS = (1, 200, 10)
MAX_PRODUCTS_BOUNDS = (1, 10000, 1000)

# Failure lists kept on results and ledger entries
MAX_FAILURES = 50

# Run ledger
DEFAULT_LEDGER_CAP = 25

# Credentials cache
DEFAULT_CACHE_TTL_SECONDS = 60

# Remote statuses that publish a product locally. Everything else is a draft.
ACTIVE_STATUSES = frozenset({"active", "activate", "available", "on_sale", "live", "approved"})

LOCAL_STATUS_PUBLISHED = "published"
LOCAL_STATUS_DRAFT = "draft"

# Provenance tags attached to imported products
PROVENANCE_TAG = "tiktok-shop"
SHOP_TAG_PREFIX = "tiktok-shop:"
PRODUCT_TAG_PREFIX = "tiktok-product:"

# Prefix for products imported without a seller SKU
SYNTHETIC_SKU_PREFIX = "remote:"

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "IDR", "ISK", "JPY", "KMF", "KRW",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

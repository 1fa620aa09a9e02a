"""
TikTok Shop API Client

Live provider for the TikTok Shop Auth API and the signed Open API.
Handles request signing, envelope decoding and error mapping.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import requests

from ..common.constants import (
    ACCESS_TOKEN_HEADER,
    AUTHORIZED_SHOPS_PATH,
    DEFAULT_AUTH_BASE_URL,
    DEFAULT_OPEN_API_BASE_URL,
    PRODUCT_SEARCH_PATH,
    TOKEN_GET_PATH,
    TOKEN_REFRESH_PATH,
)
from ..common.errors import TransportError
from ..models import AuthorizedShop, TokenPayload
from .envelope import decode_envelope, unwrap
from .provider import RawProductPage, RemoteCatalogProvider
from .signing import serialize_body, signed_query

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def _expect(value: Any, expected_type: type, api_name: str, what: str) -> Any:
    """Reject a payload field of the wrong JSON type as a malformed response."""
    if not isinstance(value, expected_type):
        raise TransportError(
            f"{api_name} returned an invalid response: {what} is not a {expected_type.__name__}",
            response_body=value,
        )
    return value



class TikTokAPIClient(RemoteCatalogProvider):
    """
    Live client for the TikTok Shop APIs.

    Handles:
    - Signing (app_key, timestamp, sign on every Open API call)
    - Envelope decoding ({code, message, request_id, data})
    - Mapping failures to ProviderError / AuthError / TransportError

    No retries happen here: auth failures are retried once by the
    AuthGateway, everything else is surfaced to the caller.

    Usage:
        client = TikTokAPIClient()
        shops = client.list_shops(app_key, app_secret, access_token)
    """

    def __init__(
        self,
        open_api_base_url: str = DEFAULT_OPEN_API_BASE_URL,
        auth_base_url: str = DEFAULT_AUTH_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.open_api_base_url = open_api_base_url.rstrip("/")
        self.auth_base_url = auth_base_url.rstrip("/")
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def close(self):
        self.session.close()

    def _send(self, method: str, url: str, api_name: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error("%s request timeout: %s", api_name, url.split("?")[0])
            raise TransportError(f"{api_name} request timed out") from e
        except requests.exceptions.RequestException as e:
            logger.error("%s request failed: %s", api_name, e)
            raise TransportError(f"{api_name} request failed: {e}") from e

    def request_open_api(
        self,
        method: str,
        path: str,
        app_key: str,
        app_secret: str,
        access_token: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """
        Make a signed Open API request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path (e.g., "/authorization/202309/shops")
            app_key: App key
            app_secret: App secret (signing key)
            access_token: Seller access token
            query: Extra query parameters
            body: JSON body for non-GET requests

        Returns:
            Envelope data
        """
        path = _normalize_path(path)
        body_string = "" if method == "GET" else serialize_body(body)
        params = signed_query(path, query, body_string, app_key, app_secret)
        url = f"{self.open_api_base_url}{path}?{urlencode(params)}"

        logger.debug("%s %s", method, path)
        response = self._send(
            method,
            url,
            "TikTok Open API",
            data=body_string.encode("utf-8") if body_string else None,
            headers={ACCESS_TOKEN_HEADER: access_token},
        )
        return unwrap(decode_envelope(response.status_code, response.text), "TikTok Open API")

    def request_auth_api(self, path: str, query: Dict[str, str]) -> TokenPayload:
        """Make an (unsigned) Auth API request and decode the token payload."""
        url = f"{self.auth_base_url}{_normalize_path(path)}?{urlencode(query)}"
        response = self._send("GET", url, "TikTok Auth API")
        data = unwrap(
            decode_envelope(response.status_code, response.text),
            "TikTok Auth API",
            require_data=True,
        )
        _expect(data, dict, "TikTok Auth API", "data")
        try:
            return TokenPayload.from_api(data)
        except (TypeError, ValueError) as e:
            raise TransportError(
                f"TikTok Auth API returned an invalid token payload: {e}",
                response_body=data,
            ) from e

    def exchange_code(self, app_key: str, app_secret: str, auth_code: str) -> TokenPayload:
        return self.request_auth_api(TOKEN_GET_PATH, {
            "app_key": app_key,
            "app_secret": app_secret,
            "auth_code": auth_code,
            "grant_type": "authorized_code",
        })

    def refresh(self, app_key: str, app_secret: str, refresh_token: str) -> TokenPayload:
        return self.request_auth_api(TOKEN_REFRESH_PATH, {
            "app_key": app_key,
            "app_secret": app_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    def list_shops(self, app_key: str, app_secret: str, access_token: str) -> List[AuthorizedShop]:
        data = self.request_open_api(
            "GET", AUTHORIZED_SHOPS_PATH, app_key, app_secret, access_token
        )
        data = _expect(data or {}, dict, "TikTok Open API", "data")
        shops = _expect(data.get("shops") or [], list, "TikTok Open API", "shops")
        return [
            AuthorizedShop.from_api(_expect(shop, dict, "TikTok Open API", "shop entry"))
            for shop in shops
        ]

    def search_products(
        self,
        app_key: str,
        app_secret: str,
        access_token: str,
        shop_cipher: str,
        page_size: int,
        page_token: str = "",
    ) -> RawProductPage:
        data = self.request_open_api(
            "POST",
            PRODUCT_SEARCH_PATH,
            app_key,
            app_secret,
            access_token,
            query={"shop_cipher": shop_cipher},
            body={"page_size": page_size, "page_token": page_token or ""},
        ) or {}
        _expect(data, dict, "TikTok Open API", "data")

        products = data.get("products") or data.get("product_list") or []
        _expect(products, list, "TikTok Open API", "products")
        total_count = data.get("total_count")
        next_page_token = data.get("next_page_token")
        return RawProductPage(
            products=products,
            total_count=total_count if isinstance(total_count, int) else None,
            next_page_token=str(next_page_token) if next_page_token else None,
        )

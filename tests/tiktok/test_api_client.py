"""Tests for shopsync/tiktok/api_client.py"""

import json
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from shopsync.common.constants import ACCESS_TOKEN_HEADER
from shopsync.common.errors import AuthError, ProviderError, TransportError
from shopsync.tiktok.api_client import TikTokAPIClient
from shopsync.tiktok.signing import build_signature


@pytest.fixture
def client():
    return TikTokAPIClient(
        open_api_base_url="https://open-api.example.com",
        auth_base_url="https://auth.example.com",
        timeout=5,
    )


def _response(status=200, code=0, data=None, message="Success"):
    mock_response = MagicMock()
    mock_response.status_code = status
    mock_response.text = json.dumps(
        {"code": code, "message": message, "request_id": "req-1", "data": data}
    )
    return mock_response


def _query(url):
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestInit:
    def test_strips_trailing_slash(self):
        c = TikTokAPIClient(open_api_base_url="https://x.example.com/", auth_base_url="https://a.example.com/")
        assert c.open_api_base_url == "https://x.example.com"
        assert c.auth_base_url == "https://a.example.com"

    def test_json_content_type(self, client):
        assert client.session.headers["Content-Type"] == "application/json"

    def test_context_manager_closes_session(self):
        c = TikTokAPIClient()
        with patch.object(c.session, "close") as mock_close:
            with c:
                pass
        mock_close.assert_called_once()


class TestRequestOpenApi:
    def test_signed_get(self, client):
        with patch.object(client.session, "request", return_value=_response(data={"shops": []})) as mock_req:
            result = client.request_open_api("GET", "/authorization/202309/shops", "key", "secret", "tok")

        assert result == {"shops": []}
        method, url = mock_req.call_args[0]
        kwargs = mock_req.call_args[1]
        assert method == "GET"
        assert url.startswith("https://open-api.example.com/authorization/202309/shops?")
        assert kwargs["headers"] == {ACCESS_TOKEN_HEADER: "tok"}
        assert kwargs["data"] is None
        assert kwargs["timeout"] == 5

        query = _query(url)
        assert query["app_key"] == "key"
        unsigned = {k: v for k, v in query.items() if k != "sign"}
        assert query["sign"] == build_signature("/authorization/202309/shops", unsigned, "", "secret")

    def test_access_token_not_in_query(self, client):
        with patch.object(client.session, "request", return_value=_response(data={})) as mock_req:
            client.request_open_api("GET", "/p", "key", "secret", "tok")
        assert "access_token" not in _query(mock_req.call_args[0][1])

    def test_post_body_is_signed_bytes(self, client):
        with patch.object(client.session, "request", return_value=_response(data={})) as mock_req:
            client.request_open_api("POST", "p", "key", "secret", "tok",
                                    query={"shop_cipher": "c1"}, body={"page_size": 5})

        kwargs = mock_req.call_args[1]
        assert kwargs["data"] == b'{"page_size":5}'
        url = mock_req.call_args[0][1]
        assert "/p?" in url
        query = _query(url)
        unsigned = {k: v for k, v in query.items() if k != "sign"}
        assert query["sign"] == build_signature("/p", unsigned, '{"page_size":5}', "secret")

    def test_auth_code_raises_auth_error(self, client):
        with patch.object(client.session, "request", return_value=_response(code=105002, message="expired")):
            with pytest.raises(AuthError):
                client.request_open_api("GET", "/p", "key", "secret", "tok")

    def test_http_401_raises_auth_error(self, client):
        with patch.object(client.session, "request", return_value=_response(status=401, code=0)):
            with pytest.raises(AuthError):
                client.request_open_api("GET", "/p", "key", "secret", "tok")

    def test_other_code_raises_provider_error(self, client):
        with patch.object(client.session, "request", return_value=_response(code=12019001, message="bad")):
            with pytest.raises(ProviderError) as exc_info:
                client.request_open_api("GET", "/p", "key", "secret", "tok")
        assert exc_info.value.code == 12019001
        assert exc_info.value.request_id == "req-1"

    def test_timeout_raises_transport_error(self, client):
        with patch.object(client.session, "request", side_effect=requests.exceptions.Timeout()):
            with pytest.raises(TransportError, match="timed out"):
                client.request_open_api("GET", "/p", "key", "secret", "tok")

    def test_connection_error_raises_transport_error(self, client):
        with patch.object(client.session, "request",
                          side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(TransportError, match="refused"):
                client.request_open_api("GET", "/p", "key", "secret", "tok")

    def test_non_json_raises_transport_error(self, client):
        mock_response = MagicMock()
        mock_response.status_code = 502
        mock_response.text = "<html>Bad Gateway</html>"
        with patch.object(client.session, "request", return_value=mock_response):
            with pytest.raises(TransportError):
                client.request_open_api("GET", "/p", "key", "secret", "tok")


class TestAuthApi:
    TOKEN_DATA = {
        "access_token": "new-access",
        "access_token_expire_in": 604800,
        "refresh_token": "new-refresh",
        "refresh_token_expire_in": 31536000,
        "open_id": "open-1",
        "seller_name": "Seller",
        "seller_base_region": "US",
        "granted_scopes": ["seller.product.basic"],
    }

    def test_exchange_code(self, client):
        with patch.object(client.session, "request", return_value=_response(data=self.TOKEN_DATA)) as mock_req:
            payload = client.exchange_code("key", "secret", "the-code")

        assert payload.access_token == "new-access"
        assert payload.refresh_token_expire_in == 31536000
        assert payload.granted_scopes == ["seller.product.basic"]
        url = mock_req.call_args[0][1]
        assert url.startswith("https://auth.example.com/api/v2/token/get?")
        query = _query(url)
        assert query["auth_code"] == "the-code"
        assert query["grant_type"] == "authorized_code"
        assert "sign" not in query

    def test_refresh(self, client):
        with patch.object(client.session, "request", return_value=_response(data=self.TOKEN_DATA)) as mock_req:
            payload = client.refresh("key", "secret", "old-refresh")

        assert payload.refresh_token == "new-refresh"
        query = _query(mock_req.call_args[0][1])
        assert query["refresh_token"] == "old-refresh"
        assert query["grant_type"] == "refresh_token"

    def test_empty_data_is_an_error(self, client):
        with patch.object(client.session, "request", return_value=_response(data=None)):
            with pytest.raises(ProviderError):
                client.exchange_code("key", "secret", "code")

    def test_rejected_refresh_token(self, client):
        with patch.object(client.session, "request", return_value=_response(code=105003, message="invalid")):
            with pytest.raises(AuthError):
                client.refresh("key", "secret", "old")


class TestCatalogCalls:
    def test_list_shops(self, client):
        data = {"shops": [{"id": "7001", "cipher": "c1", "name": "Shop", "region": "US", "code": "USX"}]}
        with patch.object(client.session, "request", return_value=_response(data=data)):
            shops = client.list_shops("key", "secret", "tok")
        assert len(shops) == 1
        assert shops[0].cipher == "c1"
        assert shops[0].code == "USX"

    def test_list_shops_empty(self, client):
        with patch.object(client.session, "request", return_value=_response(data={})):
            assert client.list_shops("key", "secret", "tok") == []

    def test_search_products(self, client):
        data = {"products": [{"id": "p1"}], "total_count": 3, "next_page_token": "tok2"}
        with patch.object(client.session, "request", return_value=_response(data=data)) as mock_req:
            page = client.search_products("key", "secret", "tok", shop_cipher="c1", page_size=1)

        assert page.products == [{"id": "p1"}]
        assert page.total_count == 3
        assert page.next_page_token == "tok2"
        assert mock_req.call_args[0][0] == "POST"
        assert _query(mock_req.call_args[0][1])["shop_cipher"] == "c1"
        assert json.loads(mock_req.call_args[1]["data"]) == {"page_size": 1, "page_token": ""}

    def test_search_products_product_list_fallback(self, client):
        data = {"product_list": [{"id": "p1"}], "next_page_token": ""}
        with patch.object(client.session, "request", return_value=_response(data=data)):
            page = client.search_products("key", "secret", "tok", shop_cipher="c1", page_size=1)
        assert page.products == [{"id": "p1"}]
        assert page.total_count is None
        assert page.next_page_token is None


class TestMalformedPayloads:
    @pytest.mark.parametrize("data", [[1, 2], "text", 7])
    def test_search_products_non_object_data(self, client, data):
        with patch.object(client.session, "request", return_value=_response(data=data)):
            with pytest.raises(TransportError, match="data is not a dict") as exc_info:
                client.search_products("key", "secret", "tok", shop_cipher="c1", page_size=1)
        assert exc_info.value.response_body == data

    def test_search_products_non_list_products(self, client):
        with patch.object(client.session, "request", return_value=_response(data={"products": {"id": "p1"}})):
            with pytest.raises(TransportError, match="products is not a list"):
                client.search_products("key", "secret", "tok", shop_cipher="c1", page_size=1)

    def test_list_shops_non_object_data(self, client):
        with patch.object(client.session, "request", return_value=_response(data=["c1"])):
            with pytest.raises(TransportError):
                client.list_shops("key", "secret", "tok")

    def test_list_shops_non_object_entry(self, client):
        with patch.object(client.session, "request", return_value=_response(data={"shops": ["c1"]})):
            with pytest.raises(TransportError, match="shop entry"):
                client.list_shops("key", "secret", "tok")

    def test_auth_non_object_data(self, client):
        with patch.object(client.session, "request", return_value=_response(data="token")):
            with pytest.raises(TransportError):
                client.exchange_code("key", "secret", "code")

    def test_auth_non_numeric_expiry(self, client):
        data = dict(TestAuthApi.TOKEN_DATA, access_token_expire_in="soon")
        with patch.object(client.session, "request", return_value=_response(data=data)):
            with pytest.raises(TransportError, match="invalid token payload"):
                client.refresh("key", "secret", "old")

    def test_html_401_raises_auth_error(self, client):
        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "<html>Unauthorized</html>"
        with patch.object(client.session, "request", return_value=mock_response):
            with pytest.raises(AuthError):
                client.request_open_api("GET", "/p", "key", "secret", "tok")

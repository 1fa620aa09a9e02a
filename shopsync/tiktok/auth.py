"""
Auth Gateway

Owns the TikTok Shop token lifecycle: authorization code exchange, refresh,
encrypted persistence, and the single refresh-and-retry rule for
authenticated calls.

States (computed from stored data):

    UNCONFIGURED -> AUTHORIZED -> EXPIRED -> UNCONFIGURED

- UNCONFIGURED: no app credentials, or no usable refresh token
- AUTHORIZED:   access token present and not expired
- EXPIRED:      access token expired, refresh token still valid
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import urlencode

from ..catalog.repository import SettingsStore
from ..common.constants import AUTHORIZE_PATH, DEFAULT_AUTH_BASE_URL, DEFAULT_CACHE_TTL_SECONDS
from ..common.encryption import SecretBox
from ..common.errors import AuthError, ConfigurationError, ProviderError
from ..models import AuthorizedShop, ConfigSummary, Credentials, TokenPayload
from .provider import RemoteCatalogProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Expiry values above this are unix timestamps rather than relative seconds
ABSOLUTE_EXPIRY_THRESHOLD = 1_000_000_000


class AuthState(str, Enum):
    UNCONFIGURED = "unconfigured"
    AUTHORIZED = "authorized"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AppCredentials:
    """Plaintext credentials for one call. Never stored."""
    app_key: str
    app_secret: str
    access_token: str


@dataclass
class _SessionTokens:
    """Tokens refreshed during a non-persisting run, held in memory only."""
    access_token: str
    access_token_expires_at: Optional[datetime]
    refresh_token: str
    refresh_token_expires_at: Optional[datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthGateway:
    """
    Token lifecycle and authenticated call wrapper.

    Stored credentials are cached on the instance for cache_ttl seconds and
    the cache is invalidated on every write. The cache only ever holds
    ciphertext; secrets are decrypted per call.

    Usage:
        gateway = AuthGateway(store, SecretBox.from_env(), provider)
        gateway.configure_app(app_key="key", app_secret="secret")
        gateway.exchange_authorization_code("code-from-callback")
        shops = gateway.authenticated_call(
            lambda app: provider.list_shops(app.app_key, app.app_secret, app.access_token)
        )
    """

    def __init__(
        self,
        store: SettingsStore,
        secrets: SecretBox,
        provider: RemoteCatalogProvider,
        cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        auth_base_url: str = DEFAULT_AUTH_BASE_URL,
    ):
        self.store = store
        self.secrets = secrets
        self.provider = provider
        self.cache_ttl = cache_ttl
        self.auth_base_url = auth_base_url.rstrip("/")
        self._clock = clock

        self._cache: Optional[Credentials] = None
        self._cache_fetched_at: Optional[datetime] = None
        self._session_tokens: Optional[_SessionTokens] = None

    # ── Stored credentials ────────────────────────────────────────────────────

    def credentials(self) -> Credentials:
        """Return stored credentials, served from the cache within its TTL."""
        now = self._clock()
        if (
            self._cache is not None
            and self._cache_fetched_at is not None
            and (now - self._cache_fetched_at).total_seconds() < self.cache_ttl
        ):
            return self._cache

        self._cache = self.store.load_credentials()
        self._cache_fetched_at = now
        return self._cache

    def invalidate_cache(self) -> None:
        self._cache = None
        self._cache_fetched_at = None

    def _write(self, fields: dict[str, Any]) -> Credentials:
        try:
            return self.store.save_credentials(fields)
        finally:
            self.invalidate_cache()

    def configure_app(
        self,
        app_key: Optional[str] = None,
        app_secret: Optional[str] = None,
        shop_id: Optional[str] = None,
        shop_cipher: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> Credentials:
        """Store app credentials. Only the given fields are changed."""
        fields: dict[str, Any] = {}
        if app_key:
            fields["app_key"] = app_key.strip()
        if app_secret:
            fields["app_secret_encrypted"] = self.secrets.encrypt(app_secret.strip())
        if shop_id:
            fields["shop_id"] = shop_id.strip()
        if shop_cipher:
            fields["shop_cipher"] = shop_cipher.strip()
        if access_token:
            fields["access_token_encrypted"] = self.secrets.encrypt(access_token.strip())
            fields["access_token_expires_at"] = None
        if refresh_token:
            fields["refresh_token_encrypted"] = self.secrets.encrypt(refresh_token.strip())
            fields["refresh_token_expires_at"] = None

        credentials = self._write(fields)
        logger.info("Saved TikTok Shop configuration (%s)", ", ".join(sorted(fields)) or "no changes")
        return credentials

    def bind_shop(self, shop: AuthorizedShop) -> Credentials:
        """Persist the selected shop."""
        logger.info("Binding shop %s (%s)", shop.name or shop.id, shop.id)
        return self._write({
            "shop_id": shop.id,
            "shop_cipher": shop.cipher,
            "shop_name": shop.name,
        })

    def disconnect(self) -> None:
        """Remove all stored credentials, the shop binding and the run history."""
        self._write(Credentials().to_dict())
        self.store.save_run_history([])
        self._session_tokens = None
        logger.info("TikTok Shop configuration removed")

    # ── State ─────────────────────────────────────────────────────────────────

    def _is_live(self, token_present: bool, expires_at: Optional[datetime]) -> bool:
        if not token_present:
            return False
        return expires_at is None or expires_at > self._clock()

    def state(self) -> AuthState:
        credentials = self.credentials()
        if not credentials.configured:
            return AuthState.UNCONFIGURED

        session = self._session_tokens
        if session is not None:
            access_live = self._is_live(True, session.access_token_expires_at)
            refresh_live = self._is_live(True, session.refresh_token_expires_at)
        else:
            access_live = self._is_live(
                bool(credentials.access_token_encrypted), credentials.access_token_expires_at
            )
            refresh_live = self._is_live(
                bool(credentials.refresh_token_encrypted), credentials.refresh_token_expires_at
            )

        if access_live:
            return AuthState.AUTHORIZED
        if refresh_live:
            return AuthState.EXPIRED
        return AuthState.UNCONFIGURED

    def summary(self) -> ConfigSummary:
        credentials = self.credentials()
        return ConfigSummary(
            configured=credentials.configured,
            state=self.state().value,
            app_key=credentials.app_key,
            shop_id=credentials.shop_id,
            shop_cipher=credentials.shop_cipher,
            shop_name=credentials.shop_name,
            seller_name=credentials.seller_name,
            seller_base_region=credentials.seller_base_region,
            has_app_secret=bool(credentials.app_secret_encrypted),
            has_access_token=bool(credentials.access_token_encrypted),
            has_refresh_token=bool(credentials.refresh_token_encrypted),
            access_token_expires_at=credentials.access_token_expires_at,
            refresh_token_expires_at=credentials.refresh_token_expires_at,
            granted_scopes=list(credentials.granted_scopes),
        )

    # ── Secrets ───────────────────────────────────────────────────────────────

    def app_credentials(self) -> tuple[str, str]:
        """
        Return (app_key, app_secret) in plaintext.

        Raises:
            ConfigurationError: If either is missing or cannot be decrypted
        """
        credentials = self.credentials()
        if not credentials.app_key:
            raise ConfigurationError("App key is missing")
        app_secret = self.secrets.decrypt(credentials.app_secret_encrypted, "app secret")
        return credentials.app_key, app_secret

    def _access_token(self) -> str:
        if self._session_tokens is not None:
            return self._session_tokens.access_token
        return self.secrets.decrypt(self.credentials().access_token_encrypted, "access token")

    def _refresh_token(self) -> str:
        if self._session_tokens is not None:
            return self._session_tokens.refresh_token
        credentials = self.credentials()
        if not self._is_live(bool(credentials.refresh_token_encrypted), credentials.refresh_token_expires_at):
            raise ConfigurationError(
                "Refresh token is missing or expired; a new authorization code is required"
            )
        return self.secrets.decrypt(credentials.refresh_token_encrypted, "refresh token")

    def discard_session_tokens(self) -> None:
        """Forget tokens refreshed during a non-persisting run."""
        self._session_tokens = None

    # ── Token operations ──────────────────────────────────────────────────────

    def _expiry(self, value: int) -> Optional[datetime]:
        if not value or value <= 0:
            return None
        if value > ABSOLUTE_EXPIRY_THRESHOLD:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return self._clock() + timedelta(seconds=value)

    def persist_tokens(self, payload: TokenPayload) -> Credentials:
        """
        Encrypt and store a token payload.

        Expiry instants are absolute: now + the provider's relative seconds.

        Raises:
            ProviderError: If the payload lacks either token
        """
        if not payload.access_token or not payload.refresh_token:
            raise ProviderError("Token response is missing access_token or refresh_token")

        fields: dict[str, Any] = {
            "access_token_encrypted": self.secrets.encrypt(payload.access_token),
            "refresh_token_encrypted": self.secrets.encrypt(payload.refresh_token),
            "access_token_expires_at": self._expiry(payload.access_token_expire_in),
            "refresh_token_expires_at": self._expiry(payload.refresh_token_expire_in),
        }
        if payload.open_id:
            fields["open_id"] = payload.open_id
        if payload.seller_name:
            fields["seller_name"] = payload.seller_name
        if payload.seller_base_region:
            fields["seller_base_region"] = payload.seller_base_region
        if payload.granted_scopes:
            fields["granted_scopes"] = list(payload.granted_scopes)

        credentials = self._write(fields)
        self._session_tokens = None
        logger.info("Stored TikTok Shop tokens (access token expires %s)",
                    credentials.access_token_expires_at.isoformat()
                    if credentials.access_token_expires_at else "unknown")
        return credentials

    def exchange_authorization_code(self, code: str) -> Credentials:
        """
        Exchange an authorization code for tokens and store them.

        Raises:
            ConfigurationError: Missing code or app credentials
            ProviderError: Provider rejected the exchange
        """
        code = (code or "").strip()
        if not code:
            raise ConfigurationError("Authorization code is required")

        app_key, app_secret = self.app_credentials()
        logger.info("Exchanging authorization code for tokens")
        payload = self.provider.exchange_code(app_key, app_secret, code)
        return self.persist_tokens(payload)

    def refresh(self, refresh_token: Optional[str] = None, persist: bool = True) -> TokenPayload:
        """
        Refresh the access token.

        Args:
            refresh_token: Token to use (defaults to the stored one)
            persist: If False, new tokens are kept in memory only

        Raises:
            ConfigurationError: No usable refresh token
            AuthError: Provider rejected the refresh token. When persisting,
                stored tokens are cleared and a new authorization is required.
        """
        app_key, app_secret = self.app_credentials()
        if refresh_token is None:
            refresh_token = self._refresh_token()

        try:
            payload = self.provider.refresh(app_key, app_secret, refresh_token)
        except AuthError:
            logger.error("Refresh token rejected; a new authorization code is required")
            if persist:
                self._write({
                    "access_token_encrypted": None,
                    "refresh_token_encrypted": None,
                    "access_token_expires_at": None,
                    "refresh_token_expires_at": None,
                })
            self._session_tokens = None
            raise

        if persist:
            self.persist_tokens(payload)
        else:
            self._session_tokens = _SessionTokens(
                access_token=payload.access_token,
                access_token_expires_at=self._expiry(payload.access_token_expire_in),
                refresh_token=payload.refresh_token,
                refresh_token_expires_at=self._expiry(payload.refresh_token_expire_in),
            )
            logger.info("Refreshed access token for this run only (not persisted)")
        return payload

    def authenticated_call(self, fn: Callable[[AppCredentials], T], persist: bool = True) -> T:
        """
        Run fn with plaintext credentials, refreshing at most once.

        An access token already known to be expired is refreshed up front.
        Otherwise an AuthError from fn triggers one refresh and one retry.
        A second AuthError propagates.

        Raises:
            ConfigurationError: No usable tokens
            AuthError: Rejected again after the refresh
        """
        app_key, app_secret = self.app_credentials()
        state = self.state()

        if state == AuthState.UNCONFIGURED:
            raise ConfigurationError(
                "TikTok Shop is not authorized; a new authorization code is required"
            )

        if state == AuthState.EXPIRED:
            logger.info("Access token expired, refreshing before call")
            access_token = self.refresh(persist=persist).access_token
            return fn(AppCredentials(app_key, app_secret, access_token))

        try:
            return fn(AppCredentials(app_key, app_secret, self._access_token()))
        except AuthError as e:
            logger.warning("Access token rejected (%s), refreshing and retrying once", e)

        access_token = self.refresh(persist=persist).access_token
        return fn(AppCredentials(app_key, app_secret, access_token))

    def build_authorize_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        """Build the seller authorization URL for the stored app key."""
        credentials = self.credentials()
        if not credentials.app_key:
            raise ConfigurationError("App key is missing")
        params = {"app_key": credentials.app_key, "state": state}
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        return f"{self.auth_base_url}{AUTHORIZE_PATH}?{urlencode(params)}"

"""
Credential data models.

Credentials only ever hold ciphertext for the app secret and tokens.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _parse_instant(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Credentials:
    """Stored TikTok Shop credentials and shop binding."""
    app_key: Optional[str] = None
    app_secret_encrypted: Optional[str] = None
    access_token_encrypted: Optional[str] = None
    refresh_token_encrypted: Optional[str] = None
    access_token_expires_at: Optional[datetime] = None
    refresh_token_expires_at: Optional[datetime] = None

    # Shop binding
    shop_id: Optional[str] = None
    shop_cipher: Optional[str] = None
    shop_name: Optional[str] = None

    # Seller metadata from the token response
    open_id: Optional[str] = None
    seller_name: Optional[str] = None
    seller_base_region: Optional[str] = None
    granted_scopes: List[str] = field(default_factory=list)

    @property
    def configured(self) -> bool:
        return bool(self.app_key and self.app_secret_encrypted)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("access_token_expires_at", "refresh_token_expires_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Credentials":
        data = dict(data or {})
        known = cls.__dataclass_fields__
        values = {k: v for k, v in data.items() if k in known}
        for key in ("access_token_expires_at", "refresh_token_expires_at"):
            values[key] = _parse_instant(values.get(key))
        values["granted_scopes"] = list(values.get("granted_scopes") or [])
        return cls(**values)


@dataclass
class TokenPayload:
    """Token response from the auth API (code exchange or refresh)."""
    access_token: str
    access_token_expire_in: int
    refresh_token: str
    refresh_token_expire_in: int
    open_id: Optional[str] = None
    seller_name: Optional[str] = None
    seller_base_region: Optional[str] = None
    granted_scopes: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TokenPayload":
        return cls(
            access_token=str(data.get("access_token") or ""),
            access_token_expire_in=int(data.get("access_token_expire_in") or 0),
            refresh_token=str(data.get("refresh_token") or ""),
            refresh_token_expire_in=int(data.get("refresh_token_expire_in") or 0),
            open_id=data.get("open_id"),
            seller_name=data.get("seller_name"),
            seller_base_region=data.get("seller_base_region"),
            granted_scopes=list(data.get("granted_scopes") or []),
        )


@dataclass
class ConfigSummary:
    """Operator-facing view of the stored configuration. No secrets."""
    configured: bool
    state: str
    app_key: Optional[str]
    shop_id: Optional[str]
    shop_cipher: Optional[str]
    shop_name: Optional[str]
    seller_name: Optional[str]
    seller_base_region: Optional[str]
    has_app_secret: bool
    has_access_token: bool
    has_refresh_token: bool
    access_token_expires_at: Optional[datetime]
    refresh_token_expires_at: Optional[datetime]
    granted_scopes: List[str] = field(default_factory=list)

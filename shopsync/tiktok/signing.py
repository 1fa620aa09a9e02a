"""
Request signing for the TikTok Shop Open API.

Every Open API call carries app_key, timestamp and a trailing sign parameter.
The sign is a hex HMAC-SHA256 keyed with the app secret over:

    secret + path + key1value1 + key2value2 ... + body + secret

where keys are sorted ascending and exclude 'sign' and 'access_token'.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..common.constants import UNSIGNED_QUERY_KEYS


def serialize_body(body: Any) -> str:
    """Serialize a request body exactly as it is sent and signed."""
    if body is None:
        return ""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def build_signature(path: str, query: Mapping[str, str], body: str, app_secret: str) -> str:
    """
    Build the request signature.

    Args:
        path: Request path, with leading slash
        query: Query parameters (sign/access_token are ignored)
        body: Serialized request body ("" for GET)
        app_secret: Shared app secret

    Returns:
        Lowercase hex digest
    """
    canonical = path
    for key in sorted(k for k in query if k not in UNSIGNED_QUERY_KEYS):
        canonical += f"{key}{query[key]}"
    if body:
        canonical += body

    wrapped = f"{app_secret}{canonical}{app_secret}"
    return hmac.new(app_secret.encode("utf-8"), wrapped.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_query(
    path: str,
    params: Optional[Mapping[str, Any]],
    body: str,
    app_key: str,
    app_secret: str,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """
    Build the full query string parameters for one attempt.

    A fresh timestamp is taken per call, so retries never replay a signature.
    None values in params are dropped.
    """
    query = {
        "app_key": app_key,
        "timestamp": str(int(time.time()) if timestamp is None else timestamp),
    }
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)

    query["sign"] = build_signature(path, query, body, app_secret)
    return query


@dataclass
class WebhookVerification:
    attempted: bool
    verified: bool
    reason: str = ""


def verify_webhook_signature(
    app_secret: str,
    payload: str,
    signature: Optional[str],
    timestamp: Optional[str] = None,
) -> WebhookVerification:
    """
    Verify a webhook push signature.

    Accepts HMAC(payload) and, when a timestamp header is present,
    HMAC(timestamp + payload). Comparison is constant time and
    case-insensitive.
    """
    if not signature:
        return WebhookVerification(attempted=False, verified=False, reason="missing signature header")

    key = app_secret.encode("utf-8")
    candidates = [hmac.new(key, payload.encode("utf-8"), hashlib.sha256).hexdigest()]
    if timestamp:
        candidates.append(
            hmac.new(key, f"{timestamp}{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
        )

    received = signature.strip().lower()
    for expected in candidates:
        if hmac.compare_digest(expected, received):
            return WebhookVerification(attempted=True, verified=True)
    return WebhookVerification(attempted=True, verified=False, reason="signature mismatch")

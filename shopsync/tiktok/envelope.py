"""
Typed decoding of the provider response envelope.

Every TikTok Shop response is wrapped as {code, message, request_id, data}.
Decoding only checks the shape; the rule that a non-zero code is an error
lives in unwrap().
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..common.constants import AUTH_ERROR_CODES
from ..common.errors import AuthError, ProviderError, TransportError


@dataclass(frozen=True)
class Envelope:
    """A well-formed provider envelope."""
    http_status: int
    code: int
    message: str
    request_id: Optional[str]
    data: Any

    @property
    def http_ok(self) -> bool:
        return 200 <= self.http_status < 300


@dataclass(frozen=True)
class MalformedResponse:
    """A response that could not be decoded as an envelope."""
    http_status: int
    reason: str
    body: Any


DecodeResult = Union[Envelope, MalformedResponse]


def decode_envelope(http_status: int, raw: str) -> DecodeResult:
    """
    Decode a raw response body.

    Returns:
        Envelope if the body is a JSON object with an integer code,
        otherwise MalformedResponse
    """
    if not raw:
        return MalformedResponse(http_status, "empty response body", None)
    try:
        parsed = json.loads(raw)
    except ValueError:
        return MalformedResponse(http_status, "response body is not JSON", raw[:200])

    if not isinstance(parsed, dict):
        return MalformedResponse(http_status, "response body is not an object", parsed)

    try:
        code = int(parsed.get("code"))
    except (TypeError, ValueError):
        return MalformedResponse(http_status, "response envelope has no code", parsed)

    request_id = parsed.get("request_id")
    return Envelope(
        http_status=http_status,
        code=code,
        message=str(parsed.get("message") or "Unknown error"),
        request_id=request_id if isinstance(request_id, str) else None,
        data=parsed.get("data"),
    )


def unwrap(result: DecodeResult, api_name: str, require_data: bool = False) -> Any:
    """
    Apply the success rule to a decoded response and return its data.

    Raises:
        TransportError: Malformed response
        AuthError: HTTP 401 (envelope or not) or an auth-related envelope code
        ProviderError: Any other non-zero code or non-2xx status
    """
    if isinstance(result, MalformedResponse):
        # Gateways answer 401 with HTML; it still means the token was rejected
        error_class = AuthError if result.http_status == 401 else TransportError
        raise error_class(
            f"{api_name} returned an invalid response: {result.reason}",
            status=result.http_status,
            response_body=result.body,
        )

    if result.code == 0 and result.http_ok and (result.data or not require_data):
        return result.data

    error_class = ProviderError
    if result.http_status == 401 or result.code in AUTH_ERROR_CODES:
        error_class = AuthError

    if result.code != 0:
        message = f"{api_name} error: {result.message}"
    elif not result.http_ok:
        message = f"{api_name} request failed with status {result.http_status}"
    else:
        message = f"{api_name} returned no data"

    raise error_class(
        message,
        code=result.code,
        request_id=result.request_id,
        status=result.http_status,
    )

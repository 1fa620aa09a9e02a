"""
Sync engine exceptions.

Page- and credential-level failures are raised as SyncError subclasses.
Per-product problems are never raised; they are recorded as import failures.
"""

from typing import Any, Optional


class SyncError(Exception):
    """Base class for errors that stop a sync run."""


class ConfigurationError(SyncError):
    """A credential field is missing or cannot be decrypted."""


class ProviderError(SyncError):
    """The provider answered with an error envelope or a non-2xx status."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        request_id: Optional[str] = None,
        status: Optional[int] = None,
        response_body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.request_id = request_id
        self.status = status
        self.response_body = response_body

    def __str__(self) -> str:
        details = []
        if self.status is not None:
            details.append(f"status={self.status}")
        if self.code is not None:
            details.append(f"code={self.code}")
        if self.request_id:
            details.append(f"request_id={self.request_id}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class AuthError(ProviderError):
    """The provider rejected the access (or refresh) token."""


class TransportError(ProviderError):
    """Network failure or a response that is not a valid envelope."""


class PersistenceError(Exception):
    """The local catalog or settings store failed to write.

    Raised by repositories; the reconciler records it per product and keeps going.
    """

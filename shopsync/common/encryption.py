"""
Secret encryption boundary.

Tokens and the app secret are stored only as Fernet ciphertext. The Fernet
key is derived with scrypt from APP_SECRETS_ENCRYPTION_KEY so any operator
supplied passphrase works.
"""

import base64
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_ENV = "APP_SECRETS_ENCRYPTION_KEY"
_KDF_SALT = b"shopsync-secrets"


def derive_fernet_key(passphrase: str) -> bytes:
    """Derive a urlsafe base64 Fernet key from an arbitrary passphrase."""
    kdf = Scrypt(salt=_KDF_SALT, length=32, n=2 ** 14, r=8, p=1)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class SecretBox:
    """
    Encrypt/decrypt boundary for stored secrets.

    Usage:
        box = SecretBox.from_env()
        stored = box.encrypt("access-token")
        box.decrypt(stored)  # -> "access-token"
    """

    def __init__(self, passphrase: str):
        if not passphrase:
            raise ConfigurationError(f"{ENCRYPTION_KEY_ENV} is not set")
        self._fernet = Fernet(derive_fernet_key(passphrase))

    @classmethod
    def from_env(cls, passphrase: Optional[str] = None) -> "SecretBox":
        return cls(passphrase or os.environ.get(ENCRYPTION_KEY_ENV, ""))

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return None
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: Optional[str], field: str = "secret") -> str:
        """
        Decrypt a stored value.

        Raises:
            ConfigurationError: If the value is missing or cannot be decrypted
        """
        if not ciphertext:
            raise ConfigurationError(f"Missing {field}")
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError) as e:
            logger.error("Failed to decrypt %s", field)
            raise ConfigurationError(f"Failed to decrypt {field}") from e

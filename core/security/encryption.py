"""AES-256-GCM sealing for Xero OAuth tokens at rest.

The tenant ID is bound as associated data: a sealed token only opens
under the tenant it was written for.
"""

import base64
import json
import os
import secrets
from dataclasses import asdict, dataclass
from typing import Any, Dict

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def generate_encryption_key() -> str:
    """New base64 key for TOKEN_ENCRYPTION_KEY."""
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass
class EncryptedToken:
    ciphertext: str
    nonce: str
    tenant_id: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedToken":
        return cls(
            ciphertext=data["ciphertext"],
            nonce=data["nonce"],
            tenant_id=data["tenant_id"],
        )


class TokenEncryption:
    """Seals and opens token dictionaries with one 32-byte key."""

    def __init__(self, encryption_key: str):
        try:
            key = base64.b64decode(encryption_key, validate=True)
        except ValueError as e:
            raise ValueError(f"TOKEN_ENCRYPTION_KEY is not base64: {e}")
        if len(key) != 32:
            raise ValueError(
                "TOKEN_ENCRYPTION_KEY must decode to 32 bytes; "
                "generate one with core.security.generate_encryption_key()"
            )
        self._aesgcm = AESGCM(key)

    def encrypt(self, token_data: Dict[str, Any], tenant_id: str) -> EncryptedToken:
        nonce = os.urandom(12)
        sealed = self._aesgcm.encrypt(
            nonce,
            json.dumps(token_data).encode("utf-8"),
            tenant_id.encode("utf-8"),
        )
        return EncryptedToken(ciphertext=_b64(sealed), nonce=_b64(nonce), tenant_id=tenant_id)

    def decrypt(self, encrypted: EncryptedToken) -> Dict[str, Any]:
        """
        Raises:
            ValueError: wrong key, tampered data or a different tenant
        """
        try:
            plaintext = self._aesgcm.decrypt(
                base64.b64decode(encrypted.nonce),
                base64.b64decode(encrypted.ciphertext),
                encrypted.tenant_id.encode("utf-8"),
            )
        except Exception as e:
            raise ValueError(f"Could not decrypt stored tokens for {encrypted.tenant_id}: {e!r}")
        return json.loads(plaintext)

"""Security module - webhook signatures, token encryption and storage."""

from core.security.signature import (
    compute_signature,
    verify_webhook_signature,
)
from core.security.encryption import (
    TokenEncryption,
    EncryptedToken,
    generate_encryption_key,
)
from core.security.token_store import (
    TokenStore,
    StoredToken,
    FileTokenStore,
)

__all__ = [
    "compute_signature",
    "verify_webhook_signature",
    "TokenEncryption",
    "EncryptedToken",
    "generate_encryption_key",
    "TokenStore",
    "StoredToken",
    "FileTokenStore",
]

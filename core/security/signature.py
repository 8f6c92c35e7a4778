"""Webhook signature verification.

The provider signs every delivery with HMAC-SHA256 over the raw request
body, keyed with the webhook key shared at subscription time, and sends the
base64 digest in a header. Verification fails closed.
"""

import base64
import hashlib
import hmac
from typing import Optional, Union

from core.observability.logging import get_logger

logger = get_logger(__name__)


def compute_signature(payload: bytes, key: str) -> str:
    """Base64 HMAC-SHA256 digest of a payload."""
    digest = hmac.new(key.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_signature(
    signature: Optional[str],
    payload: Union[bytes, bytearray],
    key: Optional[str],
) -> bool:
    """Check a delivery's signature against the raw, unparsed payload.

    Returns False when the key is unconfigured, the signature is empty or
    does not match, or the comparison itself fails. The comparison is
    constant-time and never raises.
    """
    if not key:
        logger.warning("Webhook key not configured; rejecting delivery")
        return False
    if not signature:
        return False

    try:
        expected = compute_signature(bytes(payload), key)
        return hmac.compare_digest(
            signature.encode("utf-8"),
            expected.encode("utf-8"),
        )
    except Exception as e:
        logger.warning(f"Signature comparison failed: {type(e).__name__}")
        return False

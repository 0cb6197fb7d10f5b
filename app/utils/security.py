# app/utils/security.py
"""
Secret handling helpers.

Bearer-style secrets handed to clients (guest payment tokens) are stored
only as salted SHA-256 digests and compared in constant time.
"""

import hashlib
import hmac
import secrets
from typing import Optional

# 32 random bytes -> 256 bits of entropy
SECRET_TOKEN_BYTES = 32
SALT_BYTES = 16
_SEPARATOR = "$"


def generate_secret_token() -> str:
    """Return a URL-safe random token suitable for handing to a client."""
    return secrets.token_urlsafe(SECRET_TOKEN_BYTES)


def _digest(salt: str, secret: str) -> str:
    return hashlib.sha256(f"{salt}{secret}".encode("utf-8")).hexdigest()


def hash_secret(secret: str) -> str:
    """
    Hash a secret with a fresh random salt.

    Returns:
        "<salt hex>$<sha256 hex>"
    """
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}{_SEPARATOR}{_digest(salt, secret)}"


def verify_secret(secret: Optional[str], stored: Optional[str]) -> bool:
    """Constant-time check of a presented secret against a stored hash."""
    if not secret or not stored or _SEPARATOR not in stored:
        return False
    salt, expected = stored.split(_SEPARATOR, 1)
    return hmac.compare_digest(_digest(salt, secret), expected)


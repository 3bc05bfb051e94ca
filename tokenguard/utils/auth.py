"""Authentication utilities"""
import hashlib
import hmac
import secrets
from typing import Optional

USER_ID_PREFIX = "usr_"


def hash_token(token: str) -> str:
    """Hash a serialized token using SHA256 (the ledger's storage key)"""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_user_id() -> str:
    """Generate a unique user ID"""
    random_part = secrets.token_urlsafe(12)
    return f"{USER_ID_PREFIX}{random_part}"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Anything other than exactly two space-separated parts with a ``Bearer``
    scheme yields None.
    """
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def verify_maintenance_key(configured: Optional[str], provided: Optional[str]) -> bool:
    """Check a maintenance key; an unset key leaves maintenance endpoints open."""
    if not configured:
        return True
    if not provided:
        return False
    return hmac.compare_digest(configured.encode(), provided.encode())

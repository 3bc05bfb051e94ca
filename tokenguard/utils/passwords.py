"""Password hashing and strength rules"""
import re
from typing import List

from passlib.context import CryptContext

_WEAK_PATTERNS = (
    re.compile(r"(.)\1{2,}"),                                          # aaa, 111
    re.compile(r"123456|654321|qwerty|password|admin|letmein", re.I),
    re.compile(r"^[0-9]+$"),
    re.compile(r"^[a-zA-Z]+$"),
)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


class PasswordHasher:
    """Thin wrapper around a passlib CryptContext."""

    def __init__(self, scheme: str = "pbkdf2_sha256"):
        self._context = CryptContext(schemes=[scheme], deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Unrecognised or corrupt hash: treat as a mismatch
            return False


def password_strength_errors(password: str) -> List[str]:
    """Return the list of strength rules ``password`` violates (empty = acceptable)."""
    if not password:
        return ["Password is required"]

    errors: List[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password) > MAX_PASSWORD_LENGTH:
        errors.append(f"Password must not exceed {MAX_PASSWORD_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[@$!%*?&]", password):
        errors.append("Password must contain at least one special character (@$!%*?&)")
    if any(pattern.search(password) for pattern in _WEAK_PATTERNS):
        errors.append("Password contains common weak patterns")
    return errors

"""Verification gate for protected endpoints.

Order of checks: signature and kind, then expiry, then the revocation
ledger, then the user record. A token that fails the codec never reaches
the ledger, and a blacklisted token never reaches the user lookup.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tokenguard.middleware.monitoring import record_auth_failure, record_revocation_check
from tokenguard.models.user import User
from tokenguard.services.users import UserRepository
from tokenguard.utils.jwt_utils import TokenClaims, TokenCodec, TokenError, TokenKind
from tokenguard.utils.logger import logger


class GateFailure(str, Enum):
    MISSING_TOKEN = "MISSING_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_TOKEN_TYPE = "INVALID_TOKEN_TYPE"
    TOKEN_BLACKLISTED = "TOKEN_BLACKLISTED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"


_CODEC_FAILURES = {
    TokenError.EXPIRED: GateFailure.TOKEN_EXPIRED,
    TokenError.MALFORMED: GateFailure.INVALID_TOKEN,
    TokenError.WRONG_KIND: GateFailure.INVALID_TOKEN_TYPE,
}

_MESSAGES = {
    GateFailure.MISSING_TOKEN: "Access token required",
    GateFailure.TOKEN_EXPIRED: "Access token expired",
    GateFailure.INVALID_TOKEN: "Invalid access token",
    GateFailure.INVALID_TOKEN_TYPE: "Invalid token type",
    GateFailure.TOKEN_BLACKLISTED: "Token has been invalidated",
    GateFailure.USER_NOT_FOUND: "User not found",
    GateFailure.ACCOUNT_DEACTIVATED: "Account is deactivated",
}


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""
    user: User
    token: str
    claims: TokenClaims

    @property
    def user_id(self) -> str:
        return self.user.user_id

    @property
    def email(self) -> str:
        return self.user.email


@dataclass(frozen=True)
class GateResult:
    principal: Optional[Principal] = None
    failure: Optional[GateFailure] = None

    @property
    def ok(self) -> bool:
        return self.principal is not None

    @property
    def message(self) -> str:
        return _MESSAGES.get(self.failure, "")


class VerificationGate:
    """Authenticates bearer access tokens.

    ``checker`` is anything with ``is_revoked(token, now)``: a
    :class:`RevocationStore` or an :class:`HTTPRevocationChecker`. A ledger
    that cannot answer raises :class:`RevocationStoreError`; the gate lets it
    propagate so the request fails closed.
    """

    def __init__(self, codec: TokenCodec, checker, users: UserRepository):
        self.codec = codec
        self.checker = checker
        self.users = users

    def _fail(self, failure: GateFailure) -> GateResult:
        record_auth_failure(failure.value)
        return GateResult(failure=failure)

    def authenticate(self, token: Optional[str]) -> GateResult:
        if not token:
            return self._fail(GateFailure.MISSING_TOKEN)

        verification = self.codec.verify(token, TokenKind.ACCESS)
        if not verification.ok:
            return self._fail(_CODEC_FAILURES[verification.error])
        claims = verification.claims

        started = time.perf_counter()
        revoked = self.checker.is_revoked(token, self.codec.now())
        record_revocation_check(revoked, time.perf_counter() - started)
        if revoked:
            logger.warning(
                "Blacklisted token presented",
                extra={"user_id": claims.subject_id, "action": "authenticate"},
            )
            return self._fail(GateFailure.TOKEN_BLACKLISTED)

        user = self.users.find_by_id(claims.subject_id)
        if user is None:
            return self._fail(GateFailure.USER_NOT_FOUND)
        if not user.is_active:
            return self._fail(GateFailure.ACCOUNT_DEACTIVATED)

        return GateResult(principal=Principal(user=user, token=token, claims=claims))

"""JWT utilities: access/refresh token issuance and verification.

Access and refresh tokens are signed with different secrets. Verification
returns a tagged result (MALFORMED, EXPIRED, WRONG_KIND) instead of raising.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from jose import JWTError, jwt

from tokenguard.config import Settings


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"

    @property
    def other(self) -> "TokenKind":
        return TokenKind.REFRESH if self is TokenKind.ACCESS else TokenKind.ACCESS


class TokenError(str, Enum):
    MALFORMED = "malformed"      # bad shape, bad signature, wrong issuer/audience
    EXPIRED = "expired"          # genuine token past its exp claim
    WRONG_KIND = "wrong_kind"    # genuine token of the other kind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, typed view of a token payload."""

    subject_id: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    token_id: Optional[str] = None
    email: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        """Build claims from a raw payload.

        Raises:
            ValueError: if a required claim is missing or has the wrong shape.
        """
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise ValueError("missing 'sub' claim")
        if "exp" not in payload:
            raise ValueError("missing 'exp' claim")
        try:
            kind = TokenKind(payload.get("type"))
            expires_at = _from_timestamp(payload["exp"])
            issued_at = _from_timestamp(payload.get("iat", payload["exp"]))
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise ValueError(f"invalid claim: {exc}") from exc

        return cls(
            subject_id=subject,
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=payload.get("jti"),
            email=payload.get("email"),
            raw=dict(payload),
        )


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: TokenClaims


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of :meth:`TokenCodec.verify`.

    ``claims`` is set on success, and also when ``error`` is ``EXPIRED``:
    the signature checked out, so the expired claims are still trustworthy
    (logout revokes expired tokens too).
    """

    claims: Optional[TokenClaims] = None
    error: Optional[TokenError] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.claims is not None


class TokenCodec:
    """Issues and verifies access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl_seconds: int = 86400,
        refresh_ttl_seconds: int = 604800,
        issuer: str = "login-service",
        audience: str = "client-app",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenKind.ACCESS: timedelta(seconds=access_ttl_seconds),
            TokenKind.REFRESH: timedelta(seconds=refresh_ttl_seconds),
        }
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self._clock = clock or utcnow

    @classmethod
    def from_settings(cls, settings: Settings, clock: Optional[Callable[[], datetime]] = None) -> "TokenCodec":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl_seconds=settings.JWT_ACCESS_EXPIRE_SECONDS,
            refresh_ttl_seconds=settings.JWT_REFRESH_EXPIRE_SECONDS,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    def ttl_seconds(self, kind: TokenKind) -> int:
        return int(self._ttls[kind].total_seconds())

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _issue(self, kind: TokenKind, subject_id: str, extra_claims: Dict[str, Any]) -> IssuedToken:
        now = int(self._clock().timestamp())
        payload: Dict[str, Any] = {
            "sub": subject_id,
            "type": kind.value,
            "iat": now,
            "exp": now + self.ttl_seconds(kind),
            "iss": self.issuer,
            "aud": self.audience,
            **extra_claims,
        }
        token = jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)
        return IssuedToken(token=token, claims=TokenClaims.from_payload(payload))

    def issue_access(self, subject_id: str, email: Optional[str] = None) -> IssuedToken:
        """Sign a short-lived access token for ``subject_id``."""
        extra = {"email": email} if email else {}
        return self._issue(TokenKind.ACCESS, subject_id, extra)

    def issue_refresh(self, subject_id: str) -> IssuedToken:
        """Sign a refresh token carrying a random 128-bit token id."""
        return self._issue(TokenKind.REFRESH, subject_id, {"jti": uuid.uuid4().hex})

    def issue_pair(self, subject_id: str, email: Optional[str] = None) -> Tuple[IssuedToken, IssuedToken]:
        return self.issue_access(subject_id, email), self.issue_refresh(subject_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _decode(self, token: str, kind: TokenKind) -> Dict[str, Any]:
        # Expiry is checked against our own clock after the kind check.
        return jwt.decode(
            token,
            self._secrets[kind],
            algorithms=[self.algorithm],
            audience=self.audience,
            issuer=self.issuer,
            options={"verify_exp": False},
        )

    def verify(self, token: Optional[str], expected_kind: TokenKind) -> TokenVerification:
        """Check signature, kind and expiry of ``token``.

        Never consults the revocation ledger.
        """
        if not token or not isinstance(token, str):
            return TokenVerification(error=TokenError.MALFORMED, detail="empty token")

        try:
            payload = self._decode(token, expected_kind)
        except JWTError as exc:
            # A genuine token of the other kind must not be reported as garbage.
            try:
                self._decode(token, expected_kind.other)
            except JWTError:
                return TokenVerification(error=TokenError.MALFORMED, detail=str(exc))
            return TokenVerification(
                error=TokenError.WRONG_KIND,
                detail=f"expected {expected_kind.value} token",
            )

        declared = payload.get("type")
        if declared != expected_kind.value:
            if declared == expected_kind.other.value:
                return TokenVerification(
                    error=TokenError.WRONG_KIND,
                    detail=f"expected {expected_kind.value} token",
                )
            return TokenVerification(error=TokenError.MALFORMED, detail="missing token type")

        try:
            claims = TokenClaims.from_payload(payload)
        except ValueError as exc:
            return TokenVerification(error=TokenError.MALFORMED, detail=str(exc))

        if claims.expires_at <= self._clock():
            return TokenVerification(claims=claims, error=TokenError.EXPIRED, detail="token expired")

        return TokenVerification(claims=claims)

    def peek(self, token: Optional[str]) -> Optional[TokenClaims]:
        """Return the claims of ``token`` without checking its signature, or None."""
        if not token:
            return None
        try:
            return TokenClaims.from_payload(jwt.get_unverified_claims(token))
        except (JWTError, ValueError):
            return None

"""Revocation service: logout, logout-all, manual invalidation and reaping.

All writes go through :meth:`RevocationStore.insert`, which is idempotent, so
every operation here is safe to retry. A ledger write and the matching
removal from the user's refresh token list are separate commits; a crash
between them leaves a list entry for a token that is already revoked.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from tokenguard.middleware.monitoring import record_reaped, record_revocation, record_revocation_check
from tokenguard.services.revocation_store import (
    InsertResult,
    RevocationEntry,
    RevocationReason,
    RevocationStore,
)
from tokenguard.services.users import UserRepository
from tokenguard.utils.errors import RevocationStoreError
from tokenguard.utils.jwt_utils import TokenClaims, TokenCodec, TokenError, TokenKind
from tokenguard.utils.logger import logger, token_fingerprint


@dataclass(frozen=True)
class RequestContext:
    """Client metadata recorded alongside ledger entries."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass
class LogoutOutcome:
    access_revoked: bool = False
    refresh_revoked: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass
class LogoutAllOutcome:
    access_revoked: bool = False
    refresh_revoked: int = 0
    refresh_skipped: int = 0
    refresh_failed: int = 0
    errors: List[str] = field(default_factory=list)


class InvalidationStatus(str, Enum):
    INVALIDATED = "invalidated"
    INVALID_TOKEN = "invalid_token"
    ALREADY_REVOKED = "already_revoked"


@dataclass(frozen=True)
class InvalidationResult:
    status: InvalidationStatus
    entry: Optional[RevocationEntry] = None


@dataclass(frozen=True)
class RevocationCheck:
    is_revoked: bool
    revoked_at: Optional[datetime] = None


@dataclass(frozen=True)
class SessionInfo:
    token_id: str
    created_at: datetime
    expires_at: datetime


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class RevocationService:
    """Logout-side operations on the revocation ledger."""

    def __init__(
        self,
        store: RevocationStore,
        codec: TokenCodec,
        users: UserRepository,
        require_valid_for_invalidate: bool = True,
        reaper_batch_size: int = 500,
        reaper_max_batches: int = 20,
    ):
        self.store = store
        self.codec = codec
        self.users = users
        self.require_valid_for_invalidate = require_valid_for_invalidate
        self.reaper_batch_size = reaper_batch_size
        self.reaper_max_batches = reaper_max_batches

    def _revoke(
        self,
        token: str,
        claims: TokenClaims,
        reason: RevocationReason,
        context: Optional[RequestContext],
    ) -> InsertResult:
        context = context or RequestContext()
        entry = RevocationEntry.for_token(
            token,
            claims,
            reason,
            revoked_at=self.codec.now(),
            user_agent=context.user_agent,
            ip_address=context.ip_address,
        )
        result = self.store.insert(entry)
        if result.created:
            record_revocation(entry.token_type.value, reason.value)
        return result

    # ------------------------------------------------------------------
    # logout
    # ------------------------------------------------------------------

    def logout(
        self,
        access_token: Optional[str],
        refresh_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> LogoutOutcome:
        """Revoke the caller's access token and, if valid, its refresh token.

        Token problems never fail the logout: an unparseable access token is
        skipped, an invalid refresh token is skipped, and storage failures are
        logged and reported in the outcome.
        """
        outcome = LogoutOutcome()

        if access_token:
            verification = self.codec.verify(access_token, TokenKind.ACCESS)
            # Expired tokens still carry verified claims and are revoked too (clock skew)
            if verification.claims is not None:
                try:
                    self._revoke(access_token, verification.claims, RevocationReason.LOGOUT, context)
                    outcome.access_revoked = True
                except RevocationStoreError as exc:
                    outcome.errors.append(str(exc))
            else:
                logger.info(
                    f"Logout with unusable access token ({verification.error.value})",
                    extra={"action": "logout"},
                )

        if refresh_token:
            verification = self.codec.verify(refresh_token, TokenKind.REFRESH)
            if verification.ok:
                claims = verification.claims
                try:
                    self._revoke(refresh_token, claims, RevocationReason.LOGOUT, context)
                    self.users.remove_refresh_token(claims.subject_id, refresh_token)
                    outcome.refresh_revoked = True
                except (RevocationStoreError, SQLAlchemyError) as exc:
                    logger.warning(
                        f"Refresh token cleanup failed during logout: {exc}",
                        extra={"user_id": claims.subject_id, "action": "logout"},
                    )
                    outcome.errors.append(str(exc))
            else:
                logger.warning(
                    f"Invalid refresh token during logout: {verification.detail}",
                    extra={"action": "logout"},
                )

        return outcome

    # ------------------------------------------------------------------
    # logout-all
    # ------------------------------------------------------------------

    def logout_all(
        self,
        subject_id: str,
        current_access_token: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> LogoutAllOutcome:
        """Revoke the current access token and every refresh token on file.

        Access tokens issued to other sessions are not enumerable (no
        per-subject access token registry exists) and stay valid until they
        expire; their refresh tokens are revoked, so they cannot be renewed.
        """
        outcome = LogoutAllOutcome()

        if current_access_token:
            verification = self.codec.verify(current_access_token, TokenKind.ACCESS)
            if verification.claims is not None:
                try:
                    self._revoke(current_access_token, verification.claims, RevocationReason.LOGOUT_ALL, context)
                    outcome.access_revoked = True
                except RevocationStoreError as exc:
                    outcome.errors.append(str(exc))

        context = context or RequestContext()
        now = self.codec.now()
        try:
            records = self.users.refresh_tokens_for(subject_id)
        except SQLAlchemyError as exc:
            logger.warning(
                f"Could not list refresh tokens during logout-all: {exc}",
                extra={"user_id": subject_id, "action": "logout_all"},
            )
            outcome.errors.append(str(exc))
            records = []

        for record in records:
            expires_at = _utc(record.expires_at)
            if expires_at <= now:
                outcome.refresh_skipped += 1
                continue
            entry = RevocationEntry(
                token_hash=record.token_hash,
                token_type=TokenKind.REFRESH,
                user_id=subject_id,
                expires_at=expires_at,
                revoked_at=now,
                reason=RevocationReason.LOGOUT_ALL,
                user_agent=context.user_agent,
                ip_address=context.ip_address,
            )
            try:
                result = self.store.insert(entry)
            except RevocationStoreError as exc:
                # Keep going: one failed write must not leave the rest of the sessions alive
                logger.warning(
                    f"Failed to revoke refresh token {token_fingerprint(record.token_hash)}: {exc}",
                    extra={"user_id": subject_id, "action": "logout_all"},
                )
                outcome.refresh_failed += 1
                outcome.errors.append(str(exc))
                continue
            if result.created:
                record_revocation(TokenKind.REFRESH.value, RevocationReason.LOGOUT_ALL.value)
            outcome.refresh_revoked += 1

        try:
            self.users.remove_all_refresh_tokens(subject_id)
        except SQLAlchemyError as exc:
            logger.warning(
                f"Refresh token list cleanup failed during logout-all: {exc}",
                extra={"user_id": subject_id, "action": "logout_all"},
            )
            outcome.errors.append(str(exc))

        logger.info(
            f"Logged out {subject_id} from all devices",
            extra={"user_id": subject_id, "action": "logout_all", "removed": outcome.refresh_revoked},
        )
        return outcome

    # ------------------------------------------------------------------
    # manual invalidation
    # ------------------------------------------------------------------

    def _claims_for_invalidation(self, token: str, kind: TokenKind) -> Optional[TokenClaims]:
        verification = self.codec.verify(token, kind)
        if verification.ok:
            return verification.claims
        if self.require_valid_for_invalidate:
            return None
        # Lenient mode: any token we can read, of the declared kind, may be blacklisted
        if verification.error is TokenError.EXPIRED:
            return verification.claims
        claims = self.codec.peek(token)
        if claims is None or claims.kind is not kind:
            return None
        return claims

    def invalidate_token(
        self,
        token: str,
        kind: TokenKind,
        context: Optional[RequestContext] = None,
    ) -> InvalidationResult:
        """Blacklist an arbitrary token, reporting duplicates to the caller."""
        claims = self._claims_for_invalidation(token, kind)
        if claims is None:
            return InvalidationResult(InvalidationStatus.INVALID_TOKEN)

        result = self._revoke(token, claims, RevocationReason.MANUAL_INVALIDATION, context)
        if not result.created:
            return InvalidationResult(InvalidationStatus.ALREADY_REVOKED, result.entry)

        if kind is TokenKind.REFRESH:
            try:
                self.users.remove_refresh_token(claims.subject_id, token)
            except SQLAlchemyError as exc:
                logger.warning(
                    f"Refresh token cleanup failed after invalidation: {exc}",
                    extra={"user_id": claims.subject_id, "action": "invalidate_token"},
                )

        return InvalidationResult(InvalidationStatus.INVALIDATED, result.entry)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def check_revoked(self, token: str) -> RevocationCheck:
        """Pure read; opaque or garbage strings are reported as not revoked."""
        started = time.perf_counter()
        entry = self.store.get(token, self.codec.now())
        record_revocation_check(entry is not None, time.perf_counter() - started)
        if entry is None:
            return RevocationCheck(is_revoked=False)
        return RevocationCheck(is_revoked=True, revoked_at=entry.revoked_at)

    def active_sessions(self, subject_id: str) -> List[SessionInfo]:
        """Refresh sessions still usable: on file, not revoked, not expired.

        Expired records are pruned from the user's list as a side effect.
        """
        now = self.codec.now()
        sessions: List[SessionInfo] = []
        for record in self.users.refresh_tokens_for(subject_id):
            expires_at = _utc(record.expires_at)
            if expires_at <= now:
                self.users.remove_refresh_token_hash(subject_id, record.token_hash)
                continue
            if self.store.get_by_hash(record.token_hash, now) is not None:
                continue
            sessions.append(SessionInfo(
                token_id=record.token_id,
                created_at=_utc(record.created_at),
                expires_at=expires_at,
            ))
        return sessions

    # ------------------------------------------------------------------
    # maintenance
    # ------------------------------------------------------------------

    def reap_expired(self, now: Optional[datetime] = None) -> int:
        """Remove ledger entries whose tokens have expired; returns the count."""
        removed = self.store.reap_expired(
            now or self.codec.now(),
            batch_size=self.reaper_batch_size,
            max_batches=self.reaper_max_batches,
        )
        record_reaped(removed)
        if removed:
            logger.info(
                f"Reaped {removed} expired revocation entries",
                extra={"action": "reap_expired", "removed": removed},
            )
        return removed

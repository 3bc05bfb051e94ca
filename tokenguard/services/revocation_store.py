"""Revocation store: the ledger of blacklisted tokens.

Two implementations share one contract:

* :class:`SQLRevocationStore`: durable and shared; the only correct choice
  when more than one process issues or checks tokens. The unique index on
  ``token_hash`` is what makes concurrent duplicate inserts collapse into a
  single row across processes.
* :class:`InMemoryRevocationStore`: process-local, lost on restart. Valid
  only for tests and single-instance development setups.

Every entry lives until the token it describes would have expired anyway.
Lookups ignore entries past ``expires_at`` even before the reaper deletes
them, which gives SQL backends the same behaviour as a native TTL index.
"""
import threading
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tokenguard.models.revoked_token import RevokedToken
from tokenguard.utils.auth import hash_token
from tokenguard.utils.errors import RevocationStoreError
from tokenguard.utils.jwt_utils import TokenClaims, TokenKind, utcnow
from tokenguard.utils.logger import logger, token_fingerprint

DEFAULT_SUBJECT_PAGE = 50


class RevocationReason(str, Enum):
    LOGOUT = "logout"
    LOGOUT_ALL = "logout-all"
    MANUAL_INVALIDATION = "manual-invalidation"
    SECURITY_BREACH = "security-breach"
    PASSWORD_CHANGE = "password-change"


def _as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_naive_utc(value: datetime) -> datetime:
    return _as_utc(value).replace(tzinfo=None)


@dataclass(frozen=True)
class RevocationEntry:
    """An immutable ledger record.

    Every field except ``revoked_at`` and the request metadata is fully
    determined by the token itself, so two racing writers of the same token
    produce equivalent entries.
    """

    token_hash: str
    token_type: TokenKind
    user_id: str
    expires_at: datetime
    revoked_at: datetime
    reason: RevocationReason = RevocationReason.LOGOUT
    user_agent: Optional[str] = field(default=None, compare=False)
    ip_address: Optional[str] = field(default=None, compare=False)

    @classmethod
    def for_token(
        cls,
        token: str,
        claims: TokenClaims,
        reason: RevocationReason,
        revoked_at: Optional[datetime] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> "RevocationEntry":
        return cls(
            token_hash=hash_token(token),
            token_type=claims.kind,
            user_id=claims.subject_id,
            expires_at=_as_utc(claims.expires_at),
            revoked_at=_as_utc(revoked_at or utcnow()),
            reason=reason,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= _as_utc(now)


class InsertResult(NamedTuple):
    """``created`` is False when the token was already on the ledger;
    ``entry`` is then the stored entry, unchanged."""
    entry: RevocationEntry
    created: bool


@dataclass(frozen=True)
class RevocationStats:
    total: int
    expired: int
    by_type: Dict[str, int]
    latest_revoked_at: Optional[datetime] = None

    @property
    def active(self) -> int:
        return self.total - self.expired


class RevocationStore(ABC):
    """Contract shared by all ledger backends."""

    @abstractmethod
    def insert(self, entry: RevocationEntry) -> InsertResult:
        """Atomically add ``entry`` unless its token is already present."""

    @abstractmethod
    def get_by_hash(self, token_hash: str, now: Optional[datetime] = None) -> Optional[RevocationEntry]:
        """Return the live entry stored under ``token_hash``, or None."""

    def get(self, token: str, now: Optional[datetime] = None) -> Optional[RevocationEntry]:
        """Return the live entry for ``token``, or None."""
        return self.get_by_hash(hash_token(token), now)

    def is_revoked(self, token: str, now: Optional[datetime] = None) -> bool:
        """Hot-path point lookup. Opaque or garbage strings are simply not found."""
        return self.get(token, now) is not None

    @abstractmethod
    def entries_for_subject(
        self,
        user_id: str,
        kind: Optional[TokenKind] = None,
        limit: int = DEFAULT_SUBJECT_PAGE,
    ) -> List[RevocationEntry]:
        """Most recent entries for a subject, newest first, capped at ``limit``."""

    @abstractmethod
    def reap_expired(self, now: Optional[datetime] = None, batch_size: int = 500, max_batches: int = 20) -> int:
        """Delete entries with ``expires_at <= now``.

        Works in batches of ``batch_size`` and stops after ``max_batches`` so
        one call has a bounded cost; a larger backlog is finished by later
        calls. Returns the number of entries removed.
        """

    @abstractmethod
    def stats(self, now: Optional[datetime] = None) -> RevocationStats:
        """Ledger statistics for monitoring."""


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

class SQLRevocationStore(RevocationStore):
    """Ledger backed by the ``revoked_tokens`` table.

    Each instance wraps one SQLAlchemy session and commits its own writes.
    """

    def __init__(self, db: Session):
        self._db = db

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error(
                f"Revocation store {action} failed: {exc}",
                extra={"action": action},
                exc_info=True,
            )
            raise RevocationStoreError(f"revocation store {action} failed") from exc

    @staticmethod
    def _to_entry(row: RevokedToken) -> RevocationEntry:
        return RevocationEntry(
            token_hash=row.token_hash,
            token_type=TokenKind(row.token_type),
            user_id=row.user_id,
            expires_at=_as_utc(row.expires_at),
            revoked_at=_as_utc(row.revoked_at),
            reason=RevocationReason(row.reason),
            user_agent=row.user_agent,
            ip_address=row.ip_address,
        )

    def _find(self, token_hash: str) -> Optional[RevokedToken]:
        return self._db.query(RevokedToken).filter(RevokedToken.token_hash == token_hash).first()

    def insert(self, entry: RevocationEntry) -> InsertResult:
        with self._storage_errors("insert"):
            existing = self._find(entry.token_hash)
            if existing is not None:
                return InsertResult(self._to_entry(existing), False)

            self._db.add(RevokedToken(
                token_hash=entry.token_hash,
                token_type=entry.token_type.value,
                user_id=entry.user_id,
                expires_at=_as_naive_utc(entry.expires_at),
                revoked_at=_as_naive_utc(entry.revoked_at),
                reason=entry.reason.value,
                user_agent=entry.user_agent,
                ip_address=entry.ip_address,
            ))
            try:
                self._db.commit()
            except IntegrityError:
                # Another writer inserted the same token between our read and write
                self._db.rollback()
                existing = self._find(entry.token_hash)
                if existing is None:
                    raise
                return InsertResult(self._to_entry(existing), False)

        logger.info(
            f"Revoked {entry.token_type.value} token for {entry.user_id}",
            extra={
                "user_id": entry.user_id,
                "token_type": entry.token_type.value,
                "token_hash": token_fingerprint(entry.token_hash),
                "reason": entry.reason.value,
                "action": "revoke_token",
            },
        )
        return InsertResult(entry, True)

    def get_by_hash(self, token_hash: str, now: Optional[datetime] = None) -> Optional[RevocationEntry]:
        cutoff = _as_naive_utc(now or utcnow())
        with self._storage_errors("lookup"):
            row = self._db.query(RevokedToken).filter(
                RevokedToken.token_hash == token_hash,
                RevokedToken.expires_at > cutoff,
            ).first()
        return self._to_entry(row) if row is not None else None

    def is_revoked(self, token: str, now: Optional[datetime] = None) -> bool:
        cutoff = _as_naive_utc(now or utcnow())
        with self._storage_errors("lookup"):
            row = self._db.query(RevokedToken.id).filter(
                RevokedToken.token_hash == hash_token(token),
                RevokedToken.expires_at > cutoff,
            ).first()
        return row is not None

    def entries_for_subject(
        self,
        user_id: str,
        kind: Optional[TokenKind] = None,
        limit: int = DEFAULT_SUBJECT_PAGE,
    ) -> List[RevocationEntry]:
        with self._storage_errors("subject query"):
            query = self._db.query(RevokedToken).filter(RevokedToken.user_id == user_id)
            if kind is not None:
                query = query.filter(RevokedToken.token_type == kind.value)
            rows = query.order_by(RevokedToken.revoked_at.desc(), RevokedToken.id.desc()).limit(limit).all()
        return [self._to_entry(row) for row in rows]

    def reap_expired(self, now: Optional[datetime] = None, batch_size: int = 500, max_batches: int = 20) -> int:
        cutoff = _as_naive_utc(now or utcnow())
        removed = 0
        with self._storage_errors("reap"):
            for _ in range(max_batches):
                ids = [
                    row.id
                    for row in self._db.query(RevokedToken.id)
                    .filter(RevokedToken.expires_at <= cutoff)
                    .order_by(RevokedToken.expires_at)
                    .limit(batch_size)
                    .all()
                ]
                if not ids:
                    break
                removed += self._db.query(RevokedToken).filter(
                    RevokedToken.id.in_(ids)
                ).delete(synchronize_session=False)
                self._db.commit()
                if len(ids) < batch_size:
                    break
        return removed

    def stats(self, now: Optional[datetime] = None) -> RevocationStats:
        cutoff = _as_naive_utc(now or utcnow())
        with self._storage_errors("stats"):
            total = self._db.query(func.count(RevokedToken.id)).scalar() or 0
            expired = self._db.query(func.count(RevokedToken.id)).filter(
                RevokedToken.expires_at <= cutoff
            ).scalar() or 0
            grouped = self._db.query(
                RevokedToken.token_type, func.count(RevokedToken.id)
            ).group_by(RevokedToken.token_type).all()
            latest = self._db.query(func.max(RevokedToken.revoked_at)).scalar()
        return RevocationStats(
            total=total,
            expired=expired,
            by_type={token_type: count for token_type, count in grouped},
            latest_revoked_at=_as_utc(latest) if latest is not None else None,
        )


# ---------------------------------------------------------------------------
# In-memory backend (tests / single instance only)
# ---------------------------------------------------------------------------

class InMemoryRevocationStore(RevocationStore):
    """Process-local ledger. Not shared between processes and not durable."""

    def __init__(self) -> None:
        self._entries: Dict[str, RevocationEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def insert(self, entry: RevocationEntry) -> InsertResult:
        with self._lock:
            existing = self._entries.get(entry.token_hash)
            if existing is not None:
                return InsertResult(existing, False)
            self._entries[entry.token_hash] = entry
        return InsertResult(entry, True)

    def get_by_hash(self, token_hash: str, now: Optional[datetime] = None) -> Optional[RevocationEntry]:
        current = now or utcnow()
        with self._lock:
            entry = self._entries.get(token_hash)
        if entry is None or entry.is_expired(current):
            return None
        return entry

    def entries_for_subject(
        self,
        user_id: str,
        kind: Optional[TokenKind] = None,
        limit: int = DEFAULT_SUBJECT_PAGE,
    ) -> List[RevocationEntry]:
        with self._lock:
            matches = [
                entry for entry in self._entries.values()
                if entry.user_id == user_id and (kind is None or entry.token_type == kind)
            ]
        matches.sort(key=lambda entry: entry.revoked_at, reverse=True)
        return matches[:limit]

    def reap_expired(self, now: Optional[datetime] = None, batch_size: int = 500, max_batches: int = 20) -> int:
        current = now or utcnow()
        budget = batch_size * max_batches
        with self._lock:
            expired = sorted(
                (entry for entry in self._entries.values() if entry.is_expired(current)),
                key=lambda entry: entry.expires_at,
            )[:budget]
            for entry in expired:
                del self._entries[entry.token_hash]
        return len(expired)

    def stats(self, now: Optional[datetime] = None) -> RevocationStats:
        current = now or utcnow()
        with self._lock:
            entries = list(self._entries.values())
        return RevocationStats(
            total=len(entries),
            expired=sum(1 for entry in entries if entry.is_expired(current)),
            by_type=dict(Counter(entry.token_type.value for entry in entries)),
            latest_revoked_at=max((entry.revoked_at for entry in entries), default=None),
        )

"""RevokedToken model - the revocation ledger"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from tokenguard.database import Base


class RevokedToken(Base):
    """One row per revoked token.

    The token itself is identified by the SHA-256 digest of its serialized
    value, so the ledger never stores a usable credential. ``expires_at``
    mirrors the token's own ``exp`` claim and bounds the row's lifetime:
    once it passes, the reaper may delete the row and lookups ignore it.
    """

    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    token_type = Column(String(16), nullable=False, index=True)   # access | refresh
    user_id = Column(String(50), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)                 # token exp (naive UTC)
    revoked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reason = Column(String(32), nullable=False, default="logout")
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_revoked_tokens_user_type", "user_id", "token_type"),
        Index("ix_revoked_tokens_expires_type", "expires_at", "token_type"),
    )

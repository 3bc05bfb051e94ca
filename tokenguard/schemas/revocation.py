"""Revoking-side schemas: logout, invalidation, check-token, maintenance"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from tokenguard.schemas.common import CamelModel


class InvalidateTokenRequest(CamelModel):
    """Schema for blacklisting an arbitrary token.

    Both fields are optional at the schema level; missing or unknown values
    are answered with MISSING_PARAMETERS / INVALID_TOKEN_TYPE by the handler.
    """

    token: Optional[str] = Field(None, description="Serialized JWT to blacklist")
    token_type: Optional[str] = Field(None, description="'access' or 'refresh'")


class LogoutAllResponse(CamelModel):
    success: bool = True
    message: str
    revoked_refresh_tokens: int


class CheckTokenResponse(CamelModel):
    """Schema for the check-token protocol (flat, read by remote checkers)"""

    is_blacklisted: bool
    blacklisted_at: Optional[datetime] = None


class CleanupResponse(CamelModel):
    success: bool = True
    message: str
    removed_count: int
    cleanup_time: datetime


class SessionResponse(CamelModel):
    token_id: str
    created_at: datetime
    expires_at: datetime


class SessionsResponse(CamelModel):
    """Schema for the caller's active refresh sessions.

    ``active_sessions`` is capped at SESSION_LIST_LIMIT entries;
    ``total_sessions`` counts all of them.
    """

    success: bool = True
    active_sessions: List[SessionResponse] = Field(default_factory=list)
    total_sessions: int


class TokenStatsResponse(CamelModel):
    """Schema for ledger statistics"""

    success: bool = True
    total_entries: int
    active_entries: int
    expired_entries: int
    by_type: Dict[str, int]
    latest_revoked_at: Optional[datetime] = None

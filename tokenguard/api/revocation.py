"""Revoking side: logout, manual invalidation, check-token and ledger maintenance"""
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response

from tokenguard.api.cookies import clear_refresh_cookie
from tokenguard.api.deps import (
    get_bearer_token,
    get_request_context,
    get_revocation_service,
    get_store,
    require_maintenance_key,
    require_principal,
)
from tokenguard.config import settings
from tokenguard.schemas.common import MessageResponse
from tokenguard.schemas.revocation import (
    CheckTokenResponse,
    CleanupResponse,
    InvalidateTokenRequest,
    LogoutAllResponse,
    SessionResponse,
    SessionsResponse,
    TokenStatsResponse,
)
from tokenguard.services.gate import Principal
from tokenguard.services.revocation import InvalidationStatus, RequestContext, RevocationService
from tokenguard.services.revocation_store import RevocationStore
from tokenguard.utils.errors import BadRequestError, ConflictError
from tokenguard.utils.jwt_utils import TokenKind, utcnow
from tokenguard.utils.logger import logger

router = APIRouter(tags=["revocation"])


# ---------------------------------------------------------------------------
# POST /logout
# ---------------------------------------------------------------------------

@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    access_token: Optional[str] = Depends(get_bearer_token),
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    context: RequestContext = Depends(get_request_context),
    service: RevocationService = Depends(get_revocation_service),
) -> MessageResponse:
    """Revoke the presented access token and refresh cookie.

    Always succeeds and always clears the refresh cookie, whatever state the
    presented tokens are in.
    """
    clear_refresh_cookie(response)
    try:
        outcome = service.logout(access_token, refresh_token, context)
    except Exception as e:
        logger.error(f"Logout failed: {str(e)}", extra={"action": "logout"}, exc_info=True)
        return MessageResponse(message="Logout successful")
    if outcome.errors:
        logger.warning(
            f"Logout completed with {len(outcome.errors)} ledger error(s)",
            extra={"action": "logout"},
        )
    return MessageResponse(message="Logout successful")


# ---------------------------------------------------------------------------
# POST /logout-all
# ---------------------------------------------------------------------------

@router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all(
    response: Response,
    principal: Principal = Depends(require_principal),
    context: RequestContext = Depends(get_request_context),
    service: RevocationService = Depends(get_revocation_service),
) -> LogoutAllResponse:
    """Revoke the current access token and every refresh token of the caller."""
    clear_refresh_cookie(response)
    try:
        outcome = service.logout_all(principal.user_id, principal.token, context)
    except Exception as e:
        logger.error(f"Logout-all failed: {str(e)}", extra={"action": "logout_all"}, exc_info=True)
        return LogoutAllResponse(message="Logged out from all devices successfully", revoked_refresh_tokens=0)
    if outcome.errors:
        logger.warning(
            f"Logout-all completed with {len(outcome.errors)} error(s)",
            extra={"user_id": principal.user_id, "action": "logout_all"},
        )
    return LogoutAllResponse(
        message="Logged out from all devices successfully",
        revoked_refresh_tokens=outcome.refresh_revoked,
    )


# ---------------------------------------------------------------------------
# POST /invalidate-token
# ---------------------------------------------------------------------------

@router.post("/invalidate-token", response_model=MessageResponse)
def invalidate_token(
    payload: InvalidateTokenRequest,
    principal: Principal = Depends(require_principal),
    context: RequestContext = Depends(get_request_context),
    service: RevocationService = Depends(get_revocation_service),
) -> MessageResponse:
    """Blacklist an arbitrary access or refresh token."""
    if not payload.token or not payload.token_type:
        raise BadRequestError("Token and token type are required", "MISSING_PARAMETERS")

    try:
        kind = TokenKind(payload.token_type)
    except ValueError:
        raise BadRequestError('Invalid token type. Must be "access" or "refresh"', "INVALID_TOKEN_TYPE")

    result = service.invalidate_token(payload.token, kind, context)

    if result.status is InvalidationStatus.INVALID_TOKEN:
        raise BadRequestError("Invalid token", "INVALID_TOKEN")
    if result.status is InvalidationStatus.ALREADY_REVOKED:
        raise ConflictError("Token is already invalidated", "TOKEN_ALREADY_BLACKLISTED")

    logger.info(
        f"{principal.user_id} invalidated a {kind.value} token of {result.entry.user_id}",
        extra={"user_id": principal.user_id, "token_type": kind.value, "action": "invalidate_token"},
    )
    return MessageResponse(message="Token invalidated successfully")


# ---------------------------------------------------------------------------
# GET /check-token/{token}
# ---------------------------------------------------------------------------

@router.get("/check-token/{token}", response_model=CheckTokenResponse)
def check_token(
    token: str,
    service: RevocationService = Depends(get_revocation_service),
) -> CheckTokenResponse:
    """Report whether ``token`` is on the revocation ledger.

    Service-to-service endpoint; any string is accepted and unknown strings
    are simply not blacklisted.
    """
    check = service.check_revoked(token)
    return CheckTokenResponse(is_blacklisted=check.is_revoked, blacklisted_at=check.revoked_at)


# ---------------------------------------------------------------------------
# GET /sessions
# ---------------------------------------------------------------------------

@router.get("/sessions", response_model=SessionsResponse)
def sessions(
    principal: Principal = Depends(require_principal),
    service: RevocationService = Depends(get_revocation_service),
) -> SessionsResponse:
    """List the caller's refresh sessions that are neither revoked nor expired."""
    active = service.active_sessions(principal.user_id)
    return SessionsResponse(
        active_sessions=[
            SessionResponse(token_id=s.token_id, created_at=s.created_at, expires_at=s.expires_at)
            for s in active[:settings.SESSION_LIST_LIMIT]
        ],
        total_sessions=len(active),
    )


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

@router.post("/cleanup-tokens", response_model=CleanupResponse)
def cleanup_tokens(
    _: None = Depends(require_maintenance_key),
    service: RevocationService = Depends(get_revocation_service),
) -> CleanupResponse:
    """Run one bounded reap pass over the ledger now."""
    now = utcnow()
    removed = service.reap_expired(now)
    return CleanupResponse(
        message="Token cleanup completed",
        removed_count=removed,
        cleanup_time=now,
    )


@router.get("/token-stats", response_model=TokenStatsResponse)
def token_stats(
    _: None = Depends(require_maintenance_key),
    store: RevocationStore = Depends(get_store),
) -> TokenStatsResponse:
    """Ledger statistics for monitoring."""
    stats = store.stats(utcnow())
    return TokenStatsResponse(
        total_entries=stats.total,
        active_entries=stats.active,
        expired_entries=stats.expired,
        by_type=stats.by_type,
        latest_revoked_at=stats.latest_revoked_at,
    )

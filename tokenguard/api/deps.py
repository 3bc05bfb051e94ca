"""API dependencies: wiring of codec, ledger and services, and bearer authentication.

Bearer tokens are read from ``Authorization: Bearer <JWT>``. Anything else in
that header is treated as no token at all.

Failure mapping for protected endpoints:
    TOKEN_BLACKLISTED            -> 403
    every other gate failure     -> 401
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from tokenguard.config import settings
from tokenguard.database import get_db
from tokenguard.middleware.rate_limit import get_identifier
from tokenguard.services.gate import GateFailure, Principal, VerificationGate
from tokenguard.services.remote_checker import HTTPRevocationChecker
from tokenguard.services.revocation import RequestContext, RevocationService
from tokenguard.services.revocation_store import RevocationStore, SQLRevocationStore
from tokenguard.services.users import UserRepository
from tokenguard.utils.auth import extract_bearer_token, verify_maintenance_key
from tokenguard.utils.errors import ForbiddenError, UnauthorizedError
from tokenguard.utils.jwt_utils import TokenCodec
from tokenguard.utils.passwords import PasswordHasher


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

@lru_cache()
def get_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


@lru_cache()
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(settings.PASSWORD_HASH_SCHEME)


@lru_cache()
def _remote_checker(base_url: str, timeout: float) -> HTTPRevocationChecker:
    return HTTPRevocationChecker(base_url, timeout=timeout)


def close_remote_checker() -> None:
    if settings.REVOCATION_CHECK_URL:
        _remote_checker(settings.REVOCATION_CHECK_URL, settings.REVOCATION_CHECK_TIMEOUT).close()
        _remote_checker.cache_clear()


def get_users(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserRepository:
    return UserRepository(db, hasher)


def get_store(db: Session = Depends(get_db)) -> RevocationStore:
    return SQLRevocationStore(db)


def get_revocation_checker(store: RevocationStore = Depends(get_store)):
    """Ledger view used by the gate: the shared table, or a remote revoking service."""
    if settings.REVOCATION_CHECK_URL:
        return _remote_checker(settings.REVOCATION_CHECK_URL, settings.REVOCATION_CHECK_TIMEOUT)
    return store


def get_revocation_service(
    store: RevocationStore = Depends(get_store),
    codec: TokenCodec = Depends(get_codec),
    users: UserRepository = Depends(get_users),
) -> RevocationService:
    return RevocationService(
        store=store,
        codec=codec,
        users=users,
        require_valid_for_invalidate=settings.INVALIDATE_REQUIRE_VALID_TOKEN,
        reaper_batch_size=settings.REAPER_BATCH_SIZE,
        reaper_max_batches=settings.REAPER_MAX_BATCHES,
    )


def get_gate(
    codec: TokenCodec = Depends(get_codec),
    checker=Depends(get_revocation_checker),
    users: UserRepository = Depends(get_users),
) -> VerificationGate:
    return VerificationGate(codec, checker, users)


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    return extract_bearer_token(authorization)


def get_request_context(request: Request) -> RequestContext:
    user_agent = request.headers.get("user-agent")
    return RequestContext(
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=get_identifier(request)[:64],
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def require_principal(
    token: Optional[str] = Depends(get_bearer_token),
    gate: VerificationGate = Depends(get_gate),
) -> Principal:
    """Require a valid, non-blacklisted access token for an active user."""
    result = gate.authenticate(token)
    if result.ok:
        return result.principal

    if result.failure is GateFailure.TOKEN_BLACKLISTED:
        raise ForbiddenError(result.message, result.failure.value)
    raise UnauthorizedError(result.message, result.failure.value)


def require_maintenance_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """Guard maintenance endpoints with ``X-Admin-Key`` when MAINTENANCE_API_KEY is set."""
    if not verify_maintenance_key(settings.MAINTENANCE_API_KEY, x_admin_key):
        raise UnauthorizedError("Valid X-Admin-Key header required", "INVALID_ADMIN_KEY")

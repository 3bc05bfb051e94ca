"""Issuing side: register, login, refresh and profile endpoints"""
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response, status

from tokenguard.api.cookies import set_refresh_cookie
from tokenguard.api.deps import get_codec, get_revocation_checker, get_users, require_principal
from tokenguard.config import settings
from tokenguard.middleware.monitoring import record_auth_failure
from tokenguard.middleware.rate_limit import get_rate_limit, limiter
from tokenguard.models.user import User
from tokenguard.schemas.auth import (
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    RefreshResponse,
    RegisterRequest,
    UserResponse,
)
from tokenguard.services.gate import Principal
from tokenguard.services.users import UserRepository
from tokenguard.utils.errors import BadRequestError, ConflictError, UnauthorizedError
from tokenguard.utils.jwt_utils import TokenCodec, TokenError, TokenKind
from tokenguard.utils.logger import logger
from tokenguard.utils.passwords import password_strength_errors

router = APIRouter(prefix="/auth", tags=["authentication"])


def _start_session(
    user: User,
    message: str,
    response: Response,
    codec: TokenCodec,
    users: UserRepository,
) -> AuthResponse:
    """Issue an access/refresh pair, record the refresh token and set its cookie."""
    access, refresh = codec.issue_pair(user.user_id, user.email)
    users.add_refresh_token(user.user_id, refresh.token, refresh.claims)
    set_refresh_cookie(response, refresh.token, codec.ttl_seconds(TokenKind.REFRESH))

    return AuthResponse(
        message=message,
        access_token=access.token,
        expires_in=codec.ttl_seconds(TokenKind.ACCESS),
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("register"))
def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    codec: TokenCodec = Depends(get_codec),
    users: UserRepository = Depends(get_users),
) -> AuthResponse:
    """Create a user and start their first session.

    The refresh token is only ever sent as an HTTP-only cookie.
    """
    errors = password_strength_errors(payload.password)
    if errors:
        raise BadRequestError("; ".join(errors), "WEAK_PASSWORD")

    if users.find_by_email(payload.email) is not None:
        raise ConflictError("User with this email already exists", "USER_EXISTS")

    user = users.create_user(payload.email, payload.password)

    logger.info(f"Registered user {user.user_id}", extra={"user_id": user.user_id, "action": "register"})

    return _start_session(user, "User registered successfully", response, codec, users)


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------

@router.post("/login", response_model=AuthResponse)
@limiter.limit(get_rate_limit("login"))
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    codec: TokenCodec = Depends(get_codec),
    users: UserRepository = Depends(get_users),
) -> AuthResponse:
    """Exchange email and password for an access token and a refresh cookie."""
    user = users.find_active_by_email(payload.email)
    # Same answer for unknown email and wrong password
    if user is None or not users.compare_password(user, payload.password):
        record_auth_failure("INVALID_CREDENTIALS")
        raise UnauthorizedError("Invalid email or password", "INVALID_CREDENTIALS")

    users.touch_last_login(user)

    logger.info(f"User {user.user_id} logged in", extra={"user_id": user.user_id, "action": "login"})

    return _start_session(user, "Login successful", response, codec, users)


# ---------------------------------------------------------------------------
# POST /auth/refresh
# ---------------------------------------------------------------------------

@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    codec: TokenCodec = Depends(get_codec),
    checker=Depends(get_revocation_checker),
    users: UserRepository = Depends(get_users),
) -> RefreshResponse:
    """Issue a new access token from the refresh token cookie.

    The refresh token must verify, must not be on the revocation ledger, and
    must still be on file for an active user.
    """
    if not refresh_token:
        raise UnauthorizedError("Refresh token required", "MISSING_REFRESH_TOKEN")

    verification = codec.verify(refresh_token, TokenKind.REFRESH)
    if verification.error is TokenError.EXPIRED:
        record_auth_failure("REFRESH_TOKEN_EXPIRED")
        raise UnauthorizedError("Refresh token expired", "REFRESH_TOKEN_EXPIRED")
    if not verification.ok:
        record_auth_failure("INVALID_REFRESH_TOKEN")
        raise UnauthorizedError("Invalid refresh token", "INVALID_REFRESH_TOKEN")

    claims = verification.claims
    if checker.is_revoked(refresh_token, codec.now()):
        record_auth_failure("INVALID_REFRESH_TOKEN")
        raise UnauthorizedError("Invalid refresh token", "INVALID_REFRESH_TOKEN")

    user = users.find_by_id(claims.subject_id)
    if user is None or not user.is_active or not users.has_refresh_token(user.user_id, refresh_token):
        record_auth_failure("INVALID_REFRESH_TOKEN")
        raise UnauthorizedError("Invalid refresh token", "INVALID_REFRESH_TOKEN")

    access = codec.issue_access(user.user_id, user.email)

    return RefreshResponse(
        access_token=access.token,
        expires_in=codec.ttl_seconds(TokenKind.ACCESS),
    )


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------

@router.get("/me", response_model=ProfileResponse)
def me(principal: Principal = Depends(require_principal)) -> ProfileResponse:
    """Return the authenticated user's profile."""
    return ProfileResponse(user=UserResponse.model_validate(principal.user))

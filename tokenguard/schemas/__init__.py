"""Pydantic schemas for request/response validation"""
from tokenguard.schemas.auth import (
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    RefreshResponse,
    RegisterRequest,
    UserResponse,
)
from tokenguard.schemas.common import CamelModel, MessageResponse
from tokenguard.schemas.revocation import (
    CheckTokenResponse,
    CleanupResponse,
    InvalidateTokenRequest,
    LogoutAllResponse,
    SessionResponse,
    SessionsResponse,
    TokenStatsResponse,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "ProfileResponse",
    "RefreshResponse",
    "RegisterRequest",
    "UserResponse",
    "CamelModel",
    "MessageResponse",
    "CheckTokenResponse",
    "CleanupResponse",
    "InvalidateTokenRequest",
    "LogoutAllResponse",
    "SessionResponse",
    "SessionsResponse",
    "TokenStatsResponse",
]

"""Issuing-side schemas: register, login, refresh, profile"""
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from tokenguard.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """Schema for registering a new user"""

    email: EmailStr = Field(..., max_length=254, description="Login email, stored lowercased")
    # Strength rules are checked in the handler so they surface as WEAK_PASSWORD
    password: str = Field(..., max_length=256)


class LoginRequest(CamelModel):
    """Schema for logging in"""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(CamelModel):
    """Schema for the public view of a user"""

    user_id: str
    email: str
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class AuthResponse(CamelModel):
    """Schema for register/login; the refresh token travels in a cookie only"""

    success: bool = True
    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class RefreshResponse(CamelModel):
    """Schema for a renewed access token"""

    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ProfileResponse(CamelModel):
    success: bool = True
    user: UserResponse

"""Database models"""
from tokenguard.models.revoked_token import RevokedToken
from tokenguard.models.user import RefreshTokenRecord, User

__all__ = ["RefreshTokenRecord", "RevokedToken", "User"]

"""Application configuration"""
from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Constructed once at process start and treated as immutable. Components
    receive the values they need through their constructors instead of
    reading the environment themselves.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Database
    DATABASE_URL: str = "sqlite:///./tokenguard.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour

    # JWT signing (one secret per token kind)
    JWT_ACCESS_SECRET: str = "access-secret-change-in-production"
    JWT_REFRESH_SECRET: str = "refresh-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_SECONDS: int = 86400      # 24 hours
    JWT_REFRESH_EXPIRE_SECONDS: int = 604800    # 7 days
    JWT_ISSUER: str = "login-service"
    JWT_AUDIENCE: str = "client-app"

    # Revocation
    INVALIDATE_REQUIRE_VALID_TOKEN: bool = True  # False = lenient manual invalidation
    REVOCATION_CHECK_URL: Optional[str] = None   # remote revocation service, e.g. http://logout-service:3001
    REVOCATION_CHECK_TIMEOUT: float = 2.0
    SESSION_LIST_LIMIT: int = 50

    # Reaper (expired ledger entries)
    REAPER_ENABLED: bool = True
    REAPER_INTERVAL_SECONDS: int = 3600
    REAPER_BATCH_SIZE: int = 500
    REAPER_MAX_BATCHES: int = 20

    # Maintenance endpoints (/cleanup-tokens, /token-stats); open when unset
    MAINTENANCE_API_KEY: Optional[str] = None

    # Refresh token cookie
    REFRESH_COOKIE_NAME: str = "refreshToken"
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "strict"

    # Passwords
    PASSWORD_HASH_SCHEME: str = "pbkdf2_sha256"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: List[str] = ["100/minute", "1000/hour"]
    RATE_LIMIT_LOGIN: str = "5/15 minutes"
    RATE_LIMIT_REGISTER: str = "3/hour"
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # Use redis:// for production

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    @model_validator(mode="after")
    def _check_signing_secrets(self) -> "Settings":
        """Reject configurations where the two token kinds could be confused."""
        if not self.JWT_ACCESS_SECRET or not self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must both be set")
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        if self.REAPER_BATCH_SIZE < 1 or self.REAPER_MAX_BATCHES < 1:
            raise ValueError("REAPER_BATCH_SIZE and REAPER_MAX_BATCHES must be positive")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()

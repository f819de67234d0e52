"""
Core application configuration using Pydantic Settings.

This module centralizes all configuration for the auth core including:
- Database settings
- Redis settings (rate limiter counter store, Celery broker)
- JWT signing settings
- Rate limit policies
- Refresh token cleanup schedule
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    database_url: Optional[str] = Field(default=None, description="Full SQLAlchemy async URL")
    postgres_db: str = Field(default="authcore")
    postgres_user: str = Field(default="admin")
    postgres_password: str = Field(default="devpassword123")
    postgres_host: str = Field(default="postgres")
    postgres_port: int = Field(default=5432)
    database_pool_size: int = Field(default=10)
    database_max_overflow: int = Field(default=20)
    database_echo: bool = Field(default=False)

    @property
    def url(self) -> str:
        """Get database URL."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class RedisSettings(BaseSettings):
    """Redis configuration."""

    redis_url: Optional[str] = Field(default=None, description="Full Redis URL (overrides host/port)")
    redis_host: str = Field(default="redis")
    redis_port: int = Field(default=6379)
    redis_password: Optional[str] = Field(default=None)
    redis_db: int = Field(default=0)
    redis_socket_timeout: int = Field(default=5, description="Socket timeout in seconds")

    @property
    def url(self) -> str:
        """Get Redis URL."""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class JWTSettings(BaseSettings):
    """JWT authentication configuration."""

    jwt_secret: str = Field(..., description="Access token signing secret")
    jwt_refresh_secret: Optional[str] = Field(
        default=None,
        description="Refresh token signing secret (derived from jwt_secret when unset)"
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expiration_minutes: int = Field(default=15, description="Access token expiration")
    jwt_refresh_expiration_days: int = Field(default=7, description="Refresh token expiration")
    jwt_issuer: str = Field(default="app", description="Issuer claim for access tokens")

    @field_validator("jwt_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Reject empty secrets."""
        if not v.strip():
            raise ValueError("jwt_secret must not be empty")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limit policies, keyed by action."""

    login_rate_limit_attempts: int = Field(default=5, ge=1)
    login_rate_limit_window_seconds: int = Field(default=60, ge=1)
    refresh_rate_limit_attempts: int = Field(default=30, ge=1)
    refresh_rate_limit_window_seconds: int = Field(default=300, ge=1)
    signup_rate_limit_attempts: int = Field(default=3, ge=1)
    signup_rate_limit_window_seconds: int = Field(default=3600, ge=1)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class CleanupSettings(BaseSettings):
    """Refresh token cleanup job configuration."""

    cleanup_interval_seconds: int = Field(
        default=3600,
        description="How often the beat schedule removes revoked/expired refresh tokens"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class AppSettings(BaseSettings):
    """General application settings."""

    env: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # CORS
    cors_origins: str = Field(default="http://localhost:3000", description="Comma-separated CORS origins")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level names."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v

    @property
    def is_production(self) -> bool:
        """Cookies are only marked secure in production."""
        return self.env.lower() == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class Settings(BaseSettings):
    """
    Master settings class that aggregates all configuration.

    Usage:
        from authcore.core.config import settings

        db_url = settings.database.url
        secret = settings.jwt.jwt_secret
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (useful for dependency injection in FastAPI)."""
    return settings

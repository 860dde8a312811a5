"""
Application Configuration

Uses Pydantic Settings for environment variable management with validation.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str
    DATABASE_SSL: bool = False
    DATABASE_ECHO: bool = False

    # Security (tokens are issued by the identity provider with a shared secret)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 43200  # 30 days
    JWT_ISSUER: Optional[str] = None
    JWT_AUDIENCE: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    # Email provider (Resend)
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = ""
    RESEND_REPLY_TO: str = ""
    RESEND_API_URL: str = "https://api.resend.com"

    # Email delivery retry policy
    EMAIL_SEND_MAX_ATTEMPTS: int = 3
    EMAIL_RETRY_BACKOFF_SECONDS: float = 0.5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def jwt_audience_list(self) -> Optional[List[str]]:
        """Parse accepted JWT audiences from comma-separated string."""
        if not self.JWT_AUDIENCE:
            return None
        return [aud.strip() for aud in self.JWT_AUDIENCE.split(",") if aud.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def email_provider_configured(self) -> bool:
        """Check if the Resend credentials are present."""
        return bool(self.RESEND_API_KEY.strip() and self.RESEND_FROM_EMAIL.strip())


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()

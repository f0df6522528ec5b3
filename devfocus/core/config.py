"""
DevFocus - Configuration
========================

All application settings loaded from environment variables.
Uses pydantic-settings for validation and type conversion.
"""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "DevFocus"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    # ==========================================================================
    # API
    # ==========================================================================
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ==========================================================================
    # Database (supports SQLite and PostgreSQL)
    # ==========================================================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./devfocus.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.DATABASE_URL

    # ==========================================================================
    # Authentication
    # ==========================================================================
    SECRET_KEY: str = "CHANGE-ME-IN-PRODUCTION-USE-LONG-RANDOM-STRING"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Password requirements
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_LOWERCASE: bool = True
    PASSWORD_REQUIRE_DIGIT: bool = True

    # One-time codes (email verification + password reset)
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10

    # ==========================================================================
    # Email (SendGrid)
    # ==========================================================================
    SENDGRID_API_KEY: str | None = None
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    EMAIL_FROM: str = "noreply@devfocus.app"
    EMAIL_FROM_NAME: str = "DevFocus"

    # ==========================================================================
    # AI Provider (OpenAI-compatible chat completions, Groq by default)
    # ==========================================================================
    GROQ_API_KEY: str | None = None
    GROQ_API_URL: str = "https://api.groq.com/openai/v1/chat/completions"
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    AI_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Focus Sessions & Statistics
    # ==========================================================================
    DEFAULT_SESSION_MINUTES: int = 25
    TIMEZONE: str = "UTC"  # calendar days for today/streak/last-7-days

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()

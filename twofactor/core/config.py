"""Application configuration management."""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_SECRET_KEY = "insecure-dev-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    # Application
    APP_NAME: str = "2FA Factor"
    APP_ENV: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Security
    SECRET_KEY: str = Field(default=DEV_SECRET_KEY, min_length=32)

    # TOTP
    TOTP_ISSUER: str = "2FA Factor"
    TOTP_DIGITS: int = Field(default=6, ge=6, le=10)
    TOTP_PERIOD_SECONDS: int = Field(default=30, gt=0)
    TOTP_ALGORITHM: Literal["SHA1", "SHA256", "SHA512"] = "SHA1"
    TOTP_WINDOW_STEPS: int = Field(default=1, ge=0, le=10)
    SECRET_LENGTH_BITS: int = Field(default=160, ge=80)
    SETUP_TIMEOUT_MINUTES: int = Field(default=10, gt=0)

    # Backup codes
    BACKUP_CODE_COUNT: int = Field(default=10, ge=1, le=50)
    BACKUP_CODE_LENGTH: int = Field(default=8, ge=6, le=32)
    BACKUP_CODE_HASH_TIME_COST: int = Field(default=2, ge=1)
    BACKUP_CODE_HASH_MEMORY_KIB: int = Field(default=19456, ge=8)

    # Lockout
    MAX_FAILED_ATTEMPTS: int = Field(default=5, ge=1)
    FAILED_ATTEMPT_WINDOW_MINUTES: int = Field(default=15, gt=0)
    LOCKOUT_DURATION_MINUTES: int = Field(default=15, gt=0)

    # Storage
    STORAGE_BACKEND: Literal["database", "memory"] = "database"
    DATABASE_URL: str = "sqlite+aiosqlite:///./twofactor.db"
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Header carrying the account id, set by the upstream auth layer
    ACCOUNT_ID_HEADER: str = "X-Account-ID"

    @model_validator(mode="after")
    def check_consistency(self) -> "Settings":
        """Reject combinations that would make the service unsafe or ambiguous."""
        if self.APP_ENV == "production" and self.SECRET_KEY == DEV_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set in production")
        if self.SECRET_LENGTH_BITS % 8:
            raise ValueError("SECRET_LENGTH_BITS must be a multiple of 8")
        # A backup code must never be mistaken for a TOTP code
        if self.BACKUP_CODE_LENGTH == self.TOTP_DIGITS:
            raise ValueError("BACKUP_CODE_LENGTH must differ from TOTP_DIGITS")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.APP_ENV == "production"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()

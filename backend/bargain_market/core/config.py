"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "Bargain Marketplace"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/marketplace.db"

    # Negotiation concurrency
    BARGAIN_LOCK_TIMEOUT_SECONDS: float = 2.0  # seconds to wait for a per-key lock
    CONCURRENT_MODIFICATION_RETRIES: int = 3  # attempts made by the API layer

    # Notifications
    NOTIFICATION_WEBHOOK_URL: str = ""  # empty disables the webhook dispatcher
    NOTIFICATION_WEBHOOK_TIMEOUT: float = 3.0  # seconds

    # Orders
    DEFAULT_PAYMENT_METHOD: str = "cod"

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    @field_validator("CONCURRENT_MODIFICATION_RETRIES")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Keep conflict retries small and bounded."""
        if v < 1 or v > 10:
            raise ValueError("CONCURRENT_MODIFICATION_RETRIES must be between 1 and 10")
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 3

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard level names in any case."""
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return v.upper()

    class Config:
        # Look for .env in project root first, then backend/.env
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Singleton instance
settings = Settings()

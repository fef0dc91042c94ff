"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "Used Equipment Marketplace"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database (save slots)
    DATABASE_URL: str = "sqlite:///./data/marketplace.db"

    # Randomness - None means seed from system entropy
    RANDOM_SEED: Optional[int] = None

    # Acquisition
    FOUND_LISTING_TTL_HOURS: int = 72  # offer window once the requester interacts
    SEARCH_COMMISSION_PERCENT: float = 0.08  # agent commission on found listings

    # Disposition
    OFFER_RESPONSE_HOURS: int = 24  # buyer offers lapse after this many hours

    # Housekeeping
    TOMBSTONE_RETENTION_PERIODS: int = 3  # sold/expired ids kept for race checks

    # In-memory ledger used by the standalone host
    DEFAULT_STARTING_BALANCE: float = 250000.0

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    @field_validator("SEARCH_COMMISSION_PERCENT")
    @classmethod
    def validate_commission(cls, v: float) -> float:
        """Commission is a fraction of the found price."""
        if not 0.0 <= v < 1.0:
            raise ValueError("SEARCH_COMMISSION_PERCENT must be in [0, 1)")
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_CONSOLE_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"
    LOG_RETENTION_DAYS: int = 7  # rotated daily, older files deleted
    LOG_SQL: bool = False  # echo SQLAlchemy statements into the log

    # Streaming / SSE
    SSE_HEARTBEAT_INTERVAL: int = 15  # seconds between heartbeat events

    class Config:
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),  # repo root
            str(Path(__file__).parent.parent.parent / ".env"),  # backend/.env (fallback)
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True


# Singleton instance
settings = Settings()

"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from datetime import datetime
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Suggestion source
    SUGGESTION_SOURCE: str = "google"  # google, apify
    SUGGEST_LANGUAGE: str = "en"
    SUGGEST_COUNTRY: str = "US"

    # Apify (Optional - bulk autocomplete actor)
    APIFY_TOKEN: Optional[str] = None
    APIFY_ACTOR_ID: str = "scraper-mind~youtube-autocomplete-scraper"
    APIFY_BATCH_SIZE: int = 26

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Pacing (seconds)
    CALL_DELAY_MIN: float = 1.2
    CALL_DELAY_MAX: float = 2.0
    LONG_PAUSE_EVERY: int = 5
    LONG_PAUSE_MIN: float = 3.0
    LONG_PAUSE_MAX: float = 5.0
    BATCH_DELAY_MIN: float = 1.5
    BATCH_DELAY_MAX: float = 3.0

    # Limits
    MAX_CONSECUTIVE_FAILURES: int = 8
    MAX_CHILD_PARENTS: int = 5
    SIGNAL_BATCH_SIZE: int = 6
    SIGNAL_MAX_PHRASES: int = 0  # 0 = score every visible phrase

    # Filtering / scoring
    REFERENCE_YEAR: Optional[int] = None
    COMBINE_ANCHOR_AND_INHERITANCE: bool = True
    DEMAND_JITTER: int = 2

    # Timeouts
    API_TIMEOUT: int = 10
    APIFY_TIMEOUT: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    def get_reference_year(self) -> int:
        """Year below which explicit year tokens count as stale."""
        return self.REFERENCE_YEAR or datetime.now().year


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()

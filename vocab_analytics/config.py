"""
Configuration management for the vocabulary analytics engine
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Database Configuration
    database_url: str = Field(default="sqlite:///data/vocabulary.db")

    # Application Configuration
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    # Trends Configuration
    trends_cache_ttl_minutes: float = Field(default=10.0)
    trends_min_tests: int = Field(default=5)
    acceleration_opportunities_limit: int = Field(default=5)

    # Streak Configuration
    streak_max_days: int = Field(default=365)
    streak_idle_days: int = Field(default=30)

    # Word analysis
    recent_attempts_window: int = Field(default=5)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_database_path() -> str:
    """Get the database file path from URL"""
    settings = get_settings()
    if settings.database_url.startswith("sqlite:///"):
        return settings.database_url.replace("sqlite:///", "")
    return "data/vocabulary.db"

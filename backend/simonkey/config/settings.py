"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from simonkey.config import settings

    # Access settings
    db_url = settings.POSTGRES_URL
    batch_size = settings.DOMAIN_PROGRESS_BATCH_SIZE
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings

from simonkey.enums.progress import StudyIntensity


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Simonkey Progress"
    DEBUG: bool = False

    # Optional API key for the HTTP surface (empty disables the check)
    API_KEY: str = ""

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "simonkey"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "simonkey"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def POSTGRES_URL_SYNC(self) -> str:
        """Sync PostgreSQL connection URL for Alembic migrations."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Domain progress
    DOMAIN_PROGRESS_BATCH_SIZE: int = 10

    # Points
    SESSION_QUERY_LIMIT: int = 100
    SESSION_POINTS_SCALE: int = 1000
    FREE_STUDY_POINTS_PER_SESSION: float = 0.05
    INTENSITY_POINTS: dict[StudyIntensity, float] = {
        StudyIntensity.WARM_UP: 0.5,
        StudyIntensity.PROGRESS: 1.0,
        StudyIntensity.ROCKET: 2.0,
    }
    DEFAULT_INTENSITY_POINTS: float = 0.5

    # Streaks
    STREAK_BONUS_PER_DAY: int = 200
    STREAK_HISTORY_DAYS: int = 30
    DEFAULT_TIMEZONE: str = "America/Mexico_City"

    # Rankings
    RANKING_CACHE_BACKEND: str = "memory"  # "memory" or "redis"
    RANKING_CACHE_TTL_SECONDS: int = 300
    RANKING_TOP_SIZE: int = 5
    RANKING_REFRESH_ENABLED: bool = True
    RANKING_REFRESH_MINUTES: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()

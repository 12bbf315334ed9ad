"""
Application configuration using Pydantic Settings.

Centralizes runtime configuration with environment variable support.
Static catalog data (seed activity types, tip prompt) lives in
config/defaults.yaml and is read through the defaults loader.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/sportstracker.db"

    # Tip generator (any litellm model string)
    tip_model: str = "gemini/gemini-2.5-flash"
    tip_timeout_seconds: float = 10.0

    # Background loops (seconds)
    poll_interval_seconds: float = 15.0
    penalty_check_interval_seconds: float = 3600.0

    # API Keys (optional, loaded from env)
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

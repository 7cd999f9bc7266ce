"""Configuration management using pydantic-settings."""
import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STYLES_URL = "https://raw.githubusercontent.com/Haidra-Org/AI-Horde-Styles/refs/heads/main/styles.json"
PREVIEWS_URL = "https://raw.githubusercontent.com/amiantos/AI-Horde-Styles-Previews/refs/heads/main/previews.json"
CATEGORIES_URL = "https://raw.githubusercontent.com/Haidra-Org/AI-Horde-Styles/refs/heads/main/categories.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Style preset sources (styles are primary, previews/categories are optional)
    styles_url: str = STYLES_URL
    previews_url: str = PREVIEWS_URL
    categories_url: str = CATEGORIES_URL

    # CivitAI configuration
    civitai_base_url: str = "https://civitai.com/api/v1"
    civitai_min_interval_seconds: float = 1.0  # Courtesy spacing between calls

    # Cache settings
    search_cache_ttl_seconds: int = 3600  # 60 minutes

    # Transport
    upstream_timeout_seconds: float = 30.0

    # Persistence. Empty string keeps every cache in memory only.
    database_url: Optional[str] = "sqlite:///./catalog.db"

    log_level: str = "INFO"

    @field_validator("search_cache_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("search_cache_ttl_seconds must be positive")
        return value

    @field_validator("civitai_min_interval_seconds")
    @classmethod
    def _non_negative_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("civitai_min_interval_seconds must not be negative")
        return value

    @field_validator("upstream_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("upstream_timeout_seconds must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


settings = Settings()

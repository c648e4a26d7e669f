"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: Remote profile store
        - REDIS_URL: Durable offline queue backend
        - ARTICLE_API_BASE_URL: Candidate article service
        - ENVIRONMENT: Environment name (development, staging, production)

    Without Supabase or Redis configured, the in-memory backends are used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    # ==========================================================================
    # Remote Profile Store (Supabase)
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")
    profiles_table: str = Field(default="user_profiles", description="Table holding profile documents")
    profile_store_backend: str = Field(
        default="auto",
        description="'auto', 'supabase' or 'memory'"
    )
    profile_write_max_retries: int = Field(
        default=3,
        ge=1,
        description="Compare-and-set attempts per profile update before giving up"
    )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    # ==========================================================================
    # Offline Queue (Redis)
    # ==========================================================================
    redis_url: str = Field(default="", description="Redis connection URL for the offline queue")
    offline_queue_backend: str = Field(
        default="auto",
        description="'auto', 'redis' or 'memory'"
    )

    @field_validator("profile_store_backend", "offline_queue_backend", mode="before")
    @classmethod
    def parse_backend(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # ==========================================================================
    # Article Source
    # ==========================================================================
    article_api_base_url: str = Field(
        default="http://localhost:4000",
        description="Base URL of the candidate article service"
    )
    article_request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for candidate article requests (seconds)"
    )

    # ==========================================================================
    # Feed Defaults
    # ==========================================================================
    default_language: str = Field(default="en", description="Language for new profiles")
    default_region: str = Field(default="india", description="Region for new profiles")
    default_feed_limit: int = Field(default=50, ge=1, description="Articles per feed request")

    # ==========================================================================
    # Personalization Defaults (seed the process-wide PersonalizationConfig)
    # ==========================================================================
    personalization_category_weight_decay: float = Field(
        default=0.95, gt=0.0, le=1.0,
        description="Weekly decay multiplier for untouched category weights"
    )
    personalization_min_interactions_for_preference: int = Field(
        default=3, ge=0,
        description="Interactions needed before a preference affects ranking"
    )
    personalization_diversity_factor: float = Field(
        default=0.3, ge=0.0, le=1.0,
        description="Share of the final score given to diversity"
    )
    personalization_recency_boost: float = Field(
        default=0.2, ge=0.0,
        description="Additive weight of the recency score"
    )
    personalization_max_articles_per_category: int = Field(
        default=3, ge=1,
        description="Category cap applied during feed assembly"
    )

    # ==========================================================================
    # Gamification
    # ==========================================================================
    award_points_enabled: bool = Field(
        default=True,
        description="Forward interaction points to the gamification sink"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    env_file = env_file_path()
    if env_file is not None:
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "profile_store_backend": "memory",
        "offline_queue_backend": "memory",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)


def env_file_path() -> Optional[Path]:
    """Return the project-root .env file if present."""
    env_file = Path(__file__).parent.parent.parent / ".env"
    return env_file if env_file.exists() else None

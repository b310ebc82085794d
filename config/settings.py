"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Upload cache values are turned into an UploadCacheConfig by
config.upload_cache before they reach any service.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # UPLOAD CACHE
    # ===================
    upload_cache_root: Optional[str] = Field(
        None,
        description="Directory holding staged uploads (defaults to the system temp dir)"
    )
    upload_cache_url: Optional[str] = Field(
        None,
        description="Public base URL for staged uploads (defaults to file:/<root>)"
    )
    upload_cache_prefix: Optional[str] = Field(
        None,
        description="Prefix prepended to hidden field names"
    )
    upload_cache_default_url: Optional[str] = Field(
        None,
        description="URL reported when no upload is cached (e.g. a placeholder image)"
    )
    upload_cache_default_path: Optional[str] = Field(
        None,
        description="File opened when no upload is cached"
    )
    upload_cache_max_age_seconds: int = Field(
        default=60 * 60 * 24,
        ge=1,
        description="Staged directories untouched for this long are reclaimed"
    )
    upload_cache_keep_files: bool = Field(
        default=False,
        description="Disable sweeping and clearing (leaves files for inspection)"
    )
    upload_cache_sweep_on_shutdown: bool = Field(
        default=True,
        description="Sweep stale uploads once when the process shuts down"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()

"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    UploadCacheConfig: Immutable upload cache configuration
"""

from config.settings import settings, get_settings, Settings
from config.upload_cache import (
    UploadCacheConfig,
    normalize_base_url,
    DEFAULT_KEY,
    DEFAULT_MAX_AGE,
    DURABLE_KEY_SUFFIX,
)

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Upload cache
    "UploadCacheConfig",
    "normalize_base_url",
    "DEFAULT_KEY",
    "DEFAULT_MAX_AGE",
    "DURABLE_KEY_SUFFIX",
]

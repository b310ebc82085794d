"""
Custom exceptions module.

All errors derive from AppError and serialize with to_dict().
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,

    # Upload cache
    UploadCacheConfigError,
    StagingError,
    RehydrationError,
    CachedUploadNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",

    # Upload cache
    "UploadCacheConfigError",
    "StagingError",
    "RehydrationError",
    "CachedUploadNotFoundError",
]

"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.upload_cache import (
    HiddenField,
    UploadCacheResponse,
    ClearResponse,
    SweepResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Upload cache
    "HiddenField",
    "UploadCacheResponse",
    "ClearResponse",
    "SweepResponse",
]

"""
Business logic services.

Each service handles one part of the upload cache lifecycle.
"""

from services.staging_service import StagingService, StagedDirectory
from services.handle_registry import HandleRegistry
from services.reclaimer_service import (
    ReclaimerService,
    SweepResult,
    clear_stale_uploads,
)
from services.cache_entry import CacheEntry, durable_key_for, field_name_for
from services.upload_cache_service import (
    UploadCacheService,
    UploadCacheSession,
    get_upload_cache_service,
    get_upload_cache_session,
)

__all__ = [
    "StagingService",
    "StagedDirectory",
    "HandleRegistry",
    "ReclaimerService",
    "SweepResult",
    "clear_stale_uploads",
    "CacheEntry",
    "durable_key_for",
    "field_name_for",
    "UploadCacheService",
    "UploadCacheSession",
    "get_upload_cache_service",
    "get_upload_cache_session",
]

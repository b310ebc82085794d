"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.upload_cache import router as upload_cache_router

__all__ = [
    "upload_cache_router",
]

"""
Upload cache API routes.

Form fields use dotted names ("user.avatar", "user.avatar_upload_cache"),
which are expanded into a nested parameter bag before resolution.

To let browsers load cached files, point UPLOAD_CACHE_URL at
/api/upload-cache/files.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, JSONResponse
from typing import Optional
import structlog

from models.upload_cache import (
    ClearResponse,
    SweepResponse,
    UploadCacheResponse,
)
from services.upload_cache_service import (
    UploadCacheSession,
    get_upload_cache_service,
    get_upload_cache_session,
)
from exceptions import AppError
from utils.param_bag import expand_dotted

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/upload-cache", tags=["Upload Cache"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


async def read_params(request: Request) -> dict:
    """Submitted form as a nested parameter bag."""
    form = await request.form()
    return expand_dotted(form.multi_items())


# ===================
# ROUTES
# ===================

@router.post("/{field}", response_model=UploadCacheResponse)
async def resolve_upload(
    field: str,
    request: Request,
    cache: UploadCacheSession = Depends(get_upload_cache_session),
):
    """
    Resolve one upload field of a submitted form.

    Stages a fresh file, or finds the file from an earlier attempt via
    the hidden field. Render the returned hidden field in the form.

    Raises:
        500: Upload could not be stored
    """
    try:
        params = await read_params(request)
        entry = cache.resolve(params, *field.split("."))
        return entry.to_response()

    except Exception as e:
        return handle_error(e)


@router.post("/{field}/clear", response_model=ClearResponse)
async def clear_upload(
    field: str,
    request: Request,
    cache: UploadCacheSession = Depends(get_upload_cache_session),
):
    """
    Drop the cached upload of a form that was saved successfully.
    """
    try:
        params = await read_params(request)
        entry = cache.resolve(params, *field.split("."))
        removed = entry.clear()
        return ClearResponse(status="cleared", name=entry.name, removed=removed)

    except Exception as e:
        return handle_error(e)


@router.delete("", response_model=SweepResponse)
def sweep_upload_cache(
    max_age_hours: Optional[int] = Query(
        None, ge=0, le=24 * 365, description="Override retention age in hours"
    ),
):
    """
    Delete staged uploads nobody touched within the retention age.

    Plain def: the filesystem walk runs in the threadpool, not on the event loop.
    """
    try:
        service = get_upload_cache_service()
        max_age = max_age_hours * 3600 if max_age_hours is not None else None
        result = service.reclaimer.sweep(max_age=max_age)
        return result.to_response()

    except Exception as e:
        return handle_error(e)


@router.get("/files/{identifier}/{basename}")
async def get_cached_file(identifier: str, basename: str):
    """
    Serve a staged upload (e.g. to preview an image before saving).

    Raises:
        404: Unknown or malformed identifier/basename
    """
    try:
        service = get_upload_cache_service()
        path = service.cached_file(identifier, basename)
        return FileResponse(path, filename=basename)

    except Exception as e:
        return handle_error(e)

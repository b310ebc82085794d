"""
Custom exception classes for the application.

Every error carries a code, a message and an HTTP status so routes can
return them in one response format.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "UPLOAD_STAGING_FAILED")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


# ===================
# UPLOAD CACHE ERRORS
# ===================

class UploadCacheConfigError(AppError):
    """Upload cache cannot start with the given configuration (500)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="UPLOAD_CACHE_CONFIG_ERROR",
            message=message,
            status_code=500,
            details=details
        )


class StagingError(AppError):
    """
    Upload could not be written to (or read back from) the cache (500).

    Never downgraded to an empty entry: the caller must see the failure.
    """

    def __init__(self, operation: str, path: str, message: str):
        super().__init__(
            code="UPLOAD_STAGING_FAILED",
            message=f"Upload {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, "path": path}
        )


class RehydrationError(ValidationError):
    """Durable reference from a form round-trip is unusable (422)."""

    def __init__(self, reference: str, reason: str):
        super().__init__(
            code="UPLOAD_REFERENCE_INVALID",
            message=f"Cached upload reference rejected: {reason}",
            details={"reference": reference, "reason": reason}
        )


class CachedUploadNotFoundError(NotFoundError):
    """Staged upload not found."""

    def __init__(self, value: str):
        super().__init__(
            resource="Cached upload",
            identifier=value,
            code="CACHED_UPLOAD_NOT_FOUND"
        )

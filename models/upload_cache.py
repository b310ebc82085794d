"""
Upload cache schemas for API responses.

UploadCacheResponse is the rendering contract a form view needs:
whether an upload is cached, the hidden field to round-trip and the
public URL to preview it.
"""

from pydantic import Field
from typing import Optional, Union

from models.base import BaseSchema


class HiddenField(BaseSchema):
    """Hidden form input carrying the durable reference."""

    name: str = Field(..., description="Form field name, e.g. user.avatar_upload_cache")
    value: str = Field(..., description="Durable reference <identifier>/<basename>")


class UploadCacheResponse(BaseSchema):
    """State of one upload slot after resolution."""

    key: list[Union[int, str]] = Field(..., description="Logical key path of the upload field")
    name: str = Field(..., description="Hidden field name for the durable reference")
    value: Optional[str] = Field(None, description="Durable reference, if an upload is cached")
    url: Optional[str] = Field(None, description="Public URL of the cached upload or the default")
    has_value: bool = Field(..., description="True if an upload is cached")
    hidden: Optional[HiddenField] = Field(None, description="Hidden field to render, if any")


class ClearResponse(BaseSchema):
    """Result of clearing one cached upload."""

    status: str
    name: str
    removed: bool


class SweepResponse(BaseSchema):
    """Result of a reclamation sweep."""

    scanned: int = Field(..., ge=0, description="Identifier directories inspected")
    removed: int = Field(..., ge=0, description="Directories deleted")
    retained: int = Field(..., ge=0, description="Directories kept (recently accessed)")
    failed: int = Field(..., ge=0, description="Directories skipped after an error")
    disabled: bool = Field(False, description="True if reclamation is switched off")

"""
Upload cache configuration.

Immutable settings handed to the upload cache services at construction.
Nothing here is global: tests build their own config per cache root.
"""

import re
import tempfile
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from config.settings import Settings

# =============================================================================
# CONSTANTS
# =============================================================================

# Suffix appended to the last key segment to build the durable key
DURABLE_KEY_SUFFIX = "_upload_cache"

# Logical key used when a caller gives none
DEFAULT_KEY = ("upload",)

# Retention age before a staged directory may be swept (24 hours)
DEFAULT_MAX_AGE = timedelta(hours=24)

KeySegment = Union[str, int]
NameFor = Callable[[Sequence[KeySegment]], str]

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def normalize_base_url(url: Union[str, Sequence[str]]) -> str:
    """
    Normalize a public base URL.

    Plain paths get one leading slash, no trailing slash and no repeated
    slashes: ["system", "/uploads/"] -> "/system/uploads".
    URLs with a scheme (https:, file:) only lose trailing slashes.
    """
    if not isinstance(url, str):
        url = "/".join(str(part) for part in url)

    if _SCHEME.match(url):
        return url.rstrip("/")

    path = re.sub(r"/+", "/", url).strip("/")
    return "/" + path


@dataclass(frozen=True)
class UploadCacheConfig:
    """Configuration for one upload cache root."""

    root: Path
    base_url: Optional[str] = None
    prefix: Optional[str] = None
    default_url: Optional[str] = None
    default_path: Optional[Path] = None
    max_age: timedelta = DEFAULT_MAX_AGE
    keep_files: bool = False
    sweep_on_shutdown: bool = True
    name_for: Optional[NameFor] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root).expanduser().absolute())
        if self.default_path is not None:
            object.__setattr__(self, "default_path", Path(self.default_path))
        if self.base_url is not None:
            object.__setattr__(self, "base_url", normalize_base_url(self.base_url))

    @property
    def url(self) -> str:
        """Public base URL, falling back to a file: URL of the root."""
        if self.base_url is not None:
            return self.base_url
        return f"file:/{self.root}"

    def with_overrides(self, **changes) -> "UploadCacheConfig":
        """Copy of this config with some fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadCacheConfig":
        """Build config from application settings."""
        return cls(
            root=Path(settings.upload_cache_root or tempfile.gettempdir()),
            base_url=settings.upload_cache_url,
            prefix=settings.upload_cache_prefix,
            default_url=settings.upload_cache_default_url,
            default_path=settings.upload_cache_default_path,
            max_age=timedelta(seconds=settings.upload_cache_max_age_seconds),
            keep_files=settings.upload_cache_keep_files,
            sweep_on_shutdown=settings.upload_cache_sweep_on_shutdown,
        )

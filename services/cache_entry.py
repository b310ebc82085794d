"""
Cache entry: the handle for one staged (or defaulted) upload.

An entry knows where its file lives, how the form should carry it to
the next request (hidden field name and value) and where the browser can
fetch it (url). It owns one open read handle.
"""

import shutil
from pathlib import Path
from typing import IO, Optional, Sequence
import structlog

from config.upload_cache import DURABLE_KEY_SUFFIX, KeySegment, UploadCacheConfig
from exceptions import StagingError
from models.upload_cache import HiddenField, UploadCacheResponse
from services.handle_registry import HandleRegistry
from services.reclaimer_service import ReclaimerService
from utils.identifiers import is_identifier

logger = structlog.get_logger(__name__)


def durable_key_for(key: Sequence[KeySegment]) -> tuple:
    """("user", "avatar") → ("user", "avatar_upload_cache")."""
    key = tuple(key)
    return key[:-1] + (f"{key[-1]}{DURABLE_KEY_SUFFIX}",)


def field_name_for(durable_key: Sequence[KeySegment], config: UploadCacheConfig) -> str:
    """Form field name for a durable key: "<prefix>.user.avatar_upload_cache"."""
    if config.name_for is not None:
        return config.name_for(durable_key)
    parts = [config.prefix, *durable_key]
    return ".".join(str(part) for part in parts if part is not None and part != "")


class CacheEntry:
    """
    One upload slot resolved for a request.

    Attributes:
        key: Logical key path of the form field
        cache_key: Durable key path carrying the reference
        name: Hidden field name
        path: Staged file, or None for a defaulted entry
        directory: Staged directory (root/<identifier>)
        basename: Staged file name
        value: Durable reference "<identifier>/<basename>"
        handle: Open read handle on path (or on the default path)
    """

    def __init__(
        self,
        key: Sequence[KeySegment],
        path: Optional[Path] = None,
        *,
        config: UploadCacheConfig,
        registry: HandleRegistry,
        reclaimer: ReclaimerService,
        default_url: Optional[str] = None,
        default_path: Optional[Path] = None,
    ):
        self.key = tuple(key)
        self.cache_key = durable_key_for(self.key)
        self.name = field_name_for(self.cache_key, config)

        self.default_url = default_url or config.default_url
        self.default_path = Path(default_path) if default_path else config.default_path

        self._config = config
        self._registry = registry
        self._reclaimer = reclaimer

        if path is not None:
            self.path: Optional[Path] = Path(path)
            self.directory: Optional[Path] = self.path.parent
            self.basename: Optional[str] = self.path.name
            self.value: Optional[str] = f"{self.directory.name}/{self.basename}".strip()
        else:
            self.path = None
            self.directory = None
            self.basename = None
            self.value = None

        self.handle: Optional[IO[bytes]] = None
        source = self.path or self.default_path
        if source is not None:
            try:
                self.handle = open(source, "rb")
            except OSError as e:
                logger.error("upload_open_failed", path=str(source), error=str(e))
                raise StagingError("open", str(source), str(e)) from e
            registry.register(self, self.handle)

    # ===================
    # RENDERING
    # ===================

    @property
    def has_value(self) -> bool:
        return self.value is not None

    @property
    def url(self) -> Optional[str]:
        """Public URL of the cached file, else the default URL."""
        if self.value is not None:
            return f"{self._config.url.rstrip('/')}/{self.value}"
        return self.default_url

    def hidden_field(self) -> Optional[HiddenField]:
        """Name and value of the hidden input, or None without an upload."""
        if self.value is None:
            return None
        return HiddenField(name=self.name, value=self.value)

    def to_response(self) -> UploadCacheResponse:
        """Convert to API response."""
        return UploadCacheResponse(
            key=list(self.key),
            name=self.name,
            value=self.value,
            url=self.url,
            has_value=self.has_value,
            hidden=self.hidden_field(),
        )

    # ===================
    # LIFECYCLE
    # ===================

    @property
    def closed(self) -> bool:
        return self.handle is None or self.handle.closed

    def close(self) -> None:
        """Close the handle; the staged file stays for the next request."""
        self._registry.deregister(self)
        if self.handle is not None and not self.handle.closed:
            self.handle.close()

    def clear(self) -> bool:
        """
        Delete the staged directory and release the handle.

        Call after the form was submitted successfully. Removal errors
        are logged, never raised; the handle is released regardless and
        a background sweep is started. Does nothing when the cache is
        configured to keep files.

        Returns:
            True if the directory was removed
        """
        if self._config.keep_files:
            logger.debug("upload_cache_clear_skipped", name=self.name)
            return False

        removed = False
        try:
            if self._owns_directory() and self.directory.is_dir():
                shutil.rmtree(self.directory)
                removed = True
        except OSError as e:
            logger.warning(
                "upload_cache_clear_failed",
                directory=str(self.directory),
                error=str(e)
            )
        finally:
            self.close()
            self._reclaimer.sweep_in_background()

        logger.info("upload_cache_cleared", name=self.name, value=self.value, removed=removed)
        return removed

    def _owns_directory(self) -> bool:
        """True if directory is an identifier directory directly under the root."""
        if self.directory is None or not is_identifier(self.directory.name):
            return False
        return self.directory.parent.resolve() == self._config.root.resolve()

    def __repr__(self) -> str:
        return f"CacheEntry(key={list(self.key)!r}, value={self.value!r})"

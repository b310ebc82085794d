"""
Upload cache service.

Keeps file uploads alive across form validation failures:

    with service.session() as cache:
        avatar = cache.resolve(params, "user", "avatar")
        # params["user"]["avatar"] is now a readable handle on the staged file
        # render avatar.hidden_field() so the next request can find it again
        ...
        if saved:
            avatar.clear()

Resolution tries, in order:
    1. a fresh upload at params[key] → stage it under a new identifier
    2. a durable reference at params[durable key] → reopen the staged file
    3. nothing → an empty entry with the configured defaults
"""

import atexit
import threading
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional
import structlog

from config import settings
from config.upload_cache import DEFAULT_KEY, KeySegment, UploadCacheConfig
from exceptions import (
    CachedUploadNotFoundError,
    RehydrationError,
    StagingError,
    UploadCacheConfigError,
)
from services.cache_entry import CacheEntry, durable_key_for
from services.handle_registry import HandleRegistry
from services.reclaimer_service import ReclaimerService, SweepResult
from services.staging_service import StagingService
from utils.filenames import clean_name, safe_basename
from utils.identifiers import IdentifierSource, is_identifier
from utils.param_bag import get_path, set_path

logger = structlog.get_logger(__name__)

# Attributes holding the client's filename, most specific first
FILENAME_ATTRIBUTES = ("original_path", "original_filename", "path", "filename", "name")


def normalize_key(segments: Iterable[Any]) -> tuple:
    """
    Flatten a key given as segments, lists or tuples; drop None.

    normalize_key(["user", ("photos", 0)]) → ("user", "photos", 0)
    An empty key becomes DEFAULT_KEY.
    """
    return tuple(_flatten(segments)) or DEFAULT_KEY


def _flatten(segments: Iterable[Any]) -> Iterator[KeySegment]:
    for segment in segments:
        if segment is None:
            continue
        if isinstance(segment, (list, tuple)):
            yield from _flatten(segment)
        elif isinstance(segment, int):
            yield segment
        else:
            yield str(segment)


def byte_source(value: Any) -> Optional[Any]:
    """
    The readable stream behind a submitted value, or None.

    Multipart upload objects keep the real stream under .file; plain
    file objects are streams themselves. An upload with an empty
    filename is the browser's "no file chosen" and counts as nothing.
    """
    if value is None or isinstance(value, (str, bytes)):
        return None
    if getattr(value, "filename", None) == "":
        return None

    wrapped = getattr(value, "file", None)
    if wrapped is not None and callable(getattr(wrapped, "read", None)):
        stream = wrapped
    elif callable(getattr(value, "read", None)):
        stream = value
    else:
        return None

    # A handle closed with an earlier session has nothing left to stage
    if getattr(stream, "closed", False):
        return None
    return stream


def original_filename(value: Any, source: Any) -> Optional[str]:
    """First filename-like attribute found on the value, then on its stream."""
    for candidate in (value, source):
        for attribute in FILENAME_ATTRIBUTES:
            name = getattr(candidate, attribute, None)
            if isinstance(name, (str, Path)) and str(name):
                return str(name)
    return None


class UploadCacheSession:
    """
    Request-scoped view of the cache.

    Remembers which handle it wrote into a bag for which entry, so
    resolving an unchanged bag again returns the same entry instead of
    staging the file a second time. Closing the session closes every
    handle its entries opened.
    """

    def __init__(self, service: "UploadCacheService"):
        self.service = service
        self._entries: list[CacheEntry] = []
        # id(handle) → (handle, entry); holding the handle keeps the id unique
        self._memo: dict[int, tuple[Any, CacheEntry]] = {}
        self._closed = False

    def __enter__(self) -> "UploadCacheSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ===================
    # RESOLUTION
    # ===================

    def resolve(
        self,
        params: Any,
        *key: Any,
        default_url: Optional[str] = None,
        default_path: Optional[Path] = None,
    ) -> CacheEntry:
        """
        Resolve the upload slot at key, rewriting params in place.

        Args:
            params: Nested parameter bag (mappings and sequences)
            *key: Key path segments, e.g. "user", "avatar" (default "upload")
            default_url: URL reported when nothing is cached
            default_path: File opened when nothing is cached

        Returns:
            CacheEntry for the slot

        Raises:
            StagingError: If a fresh upload cannot be stored
        """
        if self._closed:
            raise RuntimeError("upload cache session is closed")

        key = normalize_key(key)
        defaults = {"default_url": default_url, "default_path": default_path}

        entry = (
            self._from_current_upload(params, key, defaults)
            or self._from_previous_upload(params, key, defaults)
            or self._from_defaults(key, defaults)
        )

        if entry.handle is not None:
            set_path(params, key, entry.handle)
        return entry

    def _from_current_upload(self, params: Any, key: tuple, defaults: dict) -> Optional[CacheEntry]:
        value = get_path(params, key)
        if value is None:
            return None

        known = self.entry_for(value)
        if known is not None:
            return known

        source = byte_source(value)
        if source is None:
            return None

        basename = safe_basename(original_filename(value, source))
        staged = self.service.staging.stage()
        path = self.service.staging.write(staged, basename, source)

        try:
            source.seek(0)
        except (AttributeError, OSError, ValueError):
            logger.debug("upload_rewind_skipped", key=list(key))

        try:
            entry = self.service.build_entry(key, path, **defaults)
        except StagingError:
            staged.release()
            raise

        self._track(entry)
        logger.info("upload_staged", key=list(key), value=entry.value)
        return entry

    def _from_previous_upload(self, params: Any, key: tuple, defaults: dict) -> Optional[CacheEntry]:
        cache_key = durable_key_for(key)
        reference = get_path(params, cache_key)
        if not reference:
            return None

        try:
            path = self.service.resolve_reference(reference)
        except RehydrationError as e:
            logger.warning(
                "upload_reference_rejected",
                key=list(key),
                reason=e.details.get("reason")
            )
            return None

        entry = self._track(self.service.build_entry(key, path, **defaults))
        logger.info("upload_rehydrated", key=list(key), value=entry.value)
        return entry

    def _from_defaults(self, key: tuple, defaults: dict) -> CacheEntry:
        return self._track(self.service.build_entry(key, None, **defaults))

    # ===================
    # BOOKKEEPING
    # ===================

    def _track(self, entry: CacheEntry) -> CacheEntry:
        self._entries.append(entry)
        if entry.handle is not None:
            self._memo[id(entry.handle)] = (entry.handle, entry)
        return entry

    def entry_for(self, stream: Any) -> Optional[CacheEntry]:
        """Entry whose handle is stream, if this session opened it."""
        found = self._memo.get(id(stream))
        if found is not None and found[0] is stream:
            return found[1]
        return None

    @property
    def entries(self) -> list[CacheEntry]:
        return list(self._entries)

    def close(self) -> None:
        """Close all handles opened in this session."""
        if self._closed:
            return
        self._closed = True
        for entry in self._entries:
            entry.close()
        self._entries.clear()
        self._memo.clear()
        self.service.registry.reap()


class UploadCacheService:
    """
    Upload cache for one root directory.

    Owns the staging, reclamation and handle bookkeeping for that root.
    Construct once per configuration; open a session per request.
    """

    def __init__(
        self,
        config: UploadCacheConfig,
        identifiers: Optional[IdentifierSource] = None,
        registry: Optional[HandleRegistry] = None,
    ):
        self.config = config
        self._prepare_root()

        self.registry = registry or HandleRegistry()
        self.staging = StagingService(config, identifiers)
        self.reclaimer = ReclaimerService(config)

        self._shutdown_lock = threading.Lock()
        self._shut_down = False

        logger.info(
            "upload_cache_ready",
            root=str(config.root),
            url=config.url,
            max_age_seconds=int(config.max_age.total_seconds()),
            keep_files=config.keep_files
        )

    def _prepare_root(self) -> None:
        root = self.config.root
        if root.exists() and not root.is_dir():
            raise UploadCacheConfigError(
                "Upload cache root is not a directory",
                details={"root": str(root)}
            )
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UploadCacheConfigError(
                f"Upload cache root cannot be created: {e}",
                details={"root": str(root)}
            ) from e

        default_path = self.config.default_path
        if default_path is not None and not default_path.is_file():
            raise UploadCacheConfigError(
                "Upload cache default path is not a file",
                details={"default_path": str(default_path)}
            )

    def session(self) -> UploadCacheSession:
        """Open a request-scoped session (use as a context manager)."""
        return UploadCacheSession(self)

    def build_entry(
        self,
        key: Iterable[KeySegment],
        path: Optional[Path] = None,
        default_url: Optional[str] = None,
        default_path: Optional[Path] = None,
    ) -> CacheEntry:
        """Create an entry over path (or an empty one) using this cache's config."""
        return CacheEntry(
            key,
            path,
            config=self.config,
            registry=self.registry,
            reclaimer=self.reclaimer,
            default_url=default_url,
            default_path=default_path,
        )

    def resolve_reference(self, reference: Any) -> Path:
        """
        Turn an untrusted durable reference into a staged file path.

        Only the last two segments are used: an identifier directory and
        a sanitized basename, so "../" and absolute prefixes never leave
        the root.

        Raises:
            RehydrationError: If the reference is malformed or the file is gone
        """
        if not isinstance(reference, str):
            raise RehydrationError(repr(reference), "not a string")

        parts = [part for part in reference.strip().replace("\\", "/").split("/") if part]
        if len(parts) < 2:
            raise RehydrationError(reference, "expected <identifier>/<basename>")

        identifier, basename = parts[-2], parts[-1]
        if not is_identifier(identifier):
            raise RehydrationError(reference, "invalid identifier")
        if basename != clean_name(basename) or not basename.strip("."):
            raise RehydrationError(reference, "invalid basename")

        path = self.config.root / identifier / basename
        if not path.resolve().is_relative_to(self.config.root.resolve()):
            raise RehydrationError(reference, "outside cache root")
        if not path.is_file():
            raise RehydrationError(reference, "no such cached upload")

        return path

    def cached_file(self, identifier: str, basename: str) -> Path:
        """
        Staged file for a public URL.

        Raises:
            CachedUploadNotFoundError: If the segments are invalid or the file is gone
        """
        value = f"{identifier}/{basename}"
        try:
            return self.resolve_reference(value)
        except RehydrationError as e:
            raise CachedUploadNotFoundError(value) from e

    def shutdown(self) -> Optional[SweepResult]:
        """
        Close leftover handles and sweep once. Runs at most once.

        Returns:
            Sweep result, or None if already shut down or sweeping is off
        """
        with self._shutdown_lock:
            if self._shut_down:
                return None
            self._shut_down = True

        closed = self.registry.close_all()
        logger.info("upload_cache_shutting_down", handles_closed=closed)

        if not self.config.sweep_on_shutdown:
            return None
        return self.reclaimer.sweep_quietly()


# Singleton instance
_upload_cache_service: Optional[UploadCacheService] = None


def get_upload_cache_service() -> UploadCacheService:
    """Get or create the application's UploadCacheService (sweeps at exit)."""
    global _upload_cache_service
    if _upload_cache_service is None:
        _upload_cache_service = UploadCacheService(UploadCacheConfig.from_settings(settings))
        atexit.register(_upload_cache_service.shutdown)
    return _upload_cache_service


def get_upload_cache_session() -> Iterator[UploadCacheSession]:
    """FastAPI dependency: one session per request, closed afterwards."""
    with get_upload_cache_service().session() as session:
        yield session

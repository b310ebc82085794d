"""
Reclamation of stale staged uploads.

A staged directory is removed when every file below it was last
accessed at least max_age before the reference time. Directories
without files are removed on every sweep. Only directories named like
identifiers are considered, so unrelated content under the root is
never touched.

Uploads are written under ".staging-<identifier>" and renamed when
complete, so an identifier directory is never empty while in use. A
working directory left behind by a crashed write is removed once the
directory itself is older than max_age.

Sweeps are idempotent and may run concurrently with each other and with
staging.
"""

import os
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union
import structlog

from config.upload_cache import UploadCacheConfig
from models.upload_cache import SweepResponse
from utils.identifiers import is_identifier, staging_identifier

logger = structlog.get_logger(__name__)

MaxAge = Union[timedelta, int, float]
ReferenceTime = Union[datetime, int, float]


@dataclass
class SweepResult:
    """Outcome of one sweep."""
    scanned: int = 0
    removed: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    disabled: bool = False

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    def to_response(self) -> SweepResponse:
        """Convert to API response."""
        return SweepResponse(
            scanned=self.scanned,
            removed=len(self.removed),
            retained=len(self.retained),
            failed=len(self.failed),
            disabled=self.disabled,
        )


def _seconds(max_age: MaxAge) -> float:
    if isinstance(max_age, timedelta):
        return max_age.total_seconds()
    return float(max_age)


def _timestamp(since: ReferenceTime) -> float:
    if isinstance(since, datetime):
        return since.timestamp()
    return float(since)


class ReclaimerService:
    """
    Sweeps a cache root for abandoned uploads.

    Honors config.keep_files: when set, nothing is ever deleted.
    """

    def __init__(self, config: UploadCacheConfig):
        self.config = config

    @property
    def disabled(self) -> bool:
        return self.config.keep_files

    def sweep(
        self,
        root: Optional[Path] = None,
        max_age: Optional[MaxAge] = None,
        since: Optional[ReferenceTime] = None
    ) -> SweepResult:
        """
        Remove stale staged directories.

        Args:
            root: Directory to sweep (default: configured root)
            max_age: Retention age as timedelta or seconds (default: configured)
            since: Reference time as datetime or epoch seconds (default: now)

        Returns:
            SweepResult listing what was removed, kept or skipped
        """
        if self.disabled:
            logger.debug("upload_cache_sweep_disabled")
            return SweepResult(disabled=True)

        root = Path(root) if root is not None else self.config.root
        age_seconds = _seconds(max_age if max_age is not None else self.config.max_age)
        reference = _timestamp(since if since is not None else datetime.now())
        cutoff = reference - age_seconds

        result = SweepResult()

        try:
            entries = list(os.scandir(root))
        except FileNotFoundError:
            return result
        except OSError as e:
            logger.warning("upload_cache_sweep_root_unreadable", root=str(root), error=str(e))
            return result

        for entry in entries:
            working = staging_identifier(entry.name) is not None
            if not working and not is_identifier(entry.name):
                continue

            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue

                result.scanned += 1

                # A working directory may still be filling: its own age decides first
                if working and entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    result.retained.append(entry.name)
                    continue

                if not self._all_files_old(entry.path, cutoff):
                    result.retained.append(entry.name)
                    continue

                shutil.rmtree(entry.path)
                result.removed.append(entry.name)

            except FileNotFoundError:
                # Removed by a concurrent sweep or clear
                continue
            except OSError as e:
                logger.warning(
                    "upload_cache_sweep_entry_failed",
                    entry=entry.name,
                    error=str(e),
                    error_type=type(e).__name__
                )
                result.failed.append(entry.name)

        logger.info(
            "upload_cache_sweep_completed",
            root=str(root),
            scanned=result.scanned,
            removed=len(result.removed),
            retained=len(result.retained),
            failed=len(result.failed)
        )
        return result

    def _all_files_old(self, directory: str, cutoff: float) -> bool:
        """True if no file below directory was accessed after cutoff."""
        for dirpath, _, filenames in os.walk(directory):
            for filename in filenames:
                try:
                    accessed = os.lstat(os.path.join(dirpath, filename)).st_atime
                except OSError:
                    # Unknown age counts as recent
                    return False
                if accessed > cutoff:
                    return False
        return True

    def sweep_quietly(self) -> Optional[SweepResult]:
        """Sweep with defaults; log instead of raising."""
        try:
            return self.sweep()
        except Exception as e:
            logger.warning("upload_cache_background_sweep_failed", error=str(e))
            return None

    def sweep_in_background(self) -> Optional[threading.Thread]:
        """
        Start a fire-and-forget sweep on a daemon thread.

        Returns:
            The started thread, or None when reclamation is disabled
        """
        if self.disabled:
            return None

        thread = threading.Thread(
            target=self.sweep_quietly,
            name="upload-cache-sweep",
            daemon=True,
        )
        thread.start()
        return thread


def clear_stale_uploads() -> SweepResult:
    """Sweep the application's cache root now (for schedulers and cron jobs)."""
    from services.upload_cache_service import get_upload_cache_service

    return get_upload_cache_service().reclaimer.sweep()

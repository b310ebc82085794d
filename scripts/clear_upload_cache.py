"""
Delete stale cached uploads.

Run once a day from cron or any scheduler:

    python scripts/clear_upload_cache.py
    python scripts/clear_upload_cache.py --max-age-hours 6
    python scripts/clear_upload_cache.py --root /var/cache/uploads
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path so we can import modules
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import structlog

from config import settings, UploadCacheConfig
from services.reclaimer_service import ReclaimerService, SweepResult

logger = structlog.get_logger(__name__)


def clear_upload_cache(root: str = None, max_age_hours: float = None) -> SweepResult:
    """Sweep the configured (or given) cache root once."""
    config = UploadCacheConfig.from_settings(settings)
    if root:
        config = config.with_overrides(root=Path(root))
    if max_age_hours is not None:
        config = config.with_overrides(max_age=timedelta(hours=max_age_hours))

    logger.info("upload_cache_clear_started", root=str(config.root))
    return ReclaimerService(config).sweep()


def main(argv: list[str] = None) -> int:
    parser = argparse.ArgumentParser(description="Delete stale cached uploads")
    parser.add_argument("--root", help="Cache root (default: UPLOAD_CACHE_ROOT)")
    parser.add_argument(
        "--max-age-hours",
        type=float,
        help="Retention age in hours (default: UPLOAD_CACHE_MAX_AGE_SECONDS)"
    )
    args = parser.parse_args(argv)

    result = clear_upload_cache(root=args.root, max_age_hours=args.max_age_hours)

    if result.disabled:
        print("Upload cache reclamation is disabled (UPLOAD_CACHE_KEEP_FILES)")
        return 0

    print(f"Scanned:  {result.scanned}")
    print(f"Removed:  {len(result.removed)}")
    print(f"Retained: {len(result.retained)}")
    if result.failed:
        print(f"Failed:   {len(result.failed)}")
        for name in result.failed:
            print(f"  - {name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

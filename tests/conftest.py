"""
Shared test fixtures.

Every test gets its own cache root under tmp_path, so tests never share
staged files.
"""

import sys
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from typing import Generator

from config.upload_cache import UploadCacheConfig
from services.upload_cache_service import UploadCacheService, UploadCacheSession


# ===================
# CACHE FIXTURES
# ===================

@pytest.fixture
def cache_root(tmp_path) -> Path:
    """Empty cache root."""
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def config(cache_root) -> UploadCacheConfig:
    """Config for the test cache root with a public base URL."""
    return UploadCacheConfig(root=cache_root, base_url="/uploads/cache")


@pytest.fixture
def service(config) -> Generator[UploadCacheService, None, None]:
    """
    Upload cache service over the test root.

    Usage:
        def test_something(service):
            with service.session() as cache:
                entry = cache.resolve(params, "upload")
    """
    service = UploadCacheService(config)
    yield service
    service.registry.close_all()


@pytest.fixture
def session(service) -> Generator[UploadCacheSession, None, None]:
    """Open session, closed after the test."""
    with service.session() as session:
        yield session


# ===================
# FILE FIXTURES
# ===================

@pytest.fixture
def incoming_file(tmp_path):
    """
    Factory for uploads backed by a real file, opened for reading.

    Usage:
        def test_something(incoming_file):
            upload = incoming_file("photo.png", b"...")
    """
    opened = []
    incoming = tmp_path / "incoming"
    incoming.mkdir()

    def _make(name: str = "photo.png", content: bytes = b"image-bytes"):
        path = incoming / name
        path.write_bytes(content)
        handle = open(path, "rb")
        opened.append(handle)
        return handle

    yield _make

    for handle in opened:
        handle.close()


@pytest.fixture
def placeholder(tmp_path) -> Path:
    """Default file served when nothing is cached."""
    path = tmp_path / "placeholder.png"
    path.write_bytes(b"placeholder")
    return path

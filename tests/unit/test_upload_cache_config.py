"""
Unit tests for upload cache configuration.

Run: pytest tests/unit/test_upload_cache_config.py -v
"""

import tempfile
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from config.settings import Settings
from config.upload_cache import UploadCacheConfig, normalize_base_url


class TestNormalizeBaseUrl:
    """Tests for normalize_base_url()"""

    def test_joins_and_squeezes_segments(self):
        """Segments are joined with single slashes."""
        assert normalize_base_url(["system", "/uploads/", "cache"]) == "/system/uploads/cache"

    def test_adds_leading_and_strips_trailing_slash(self):
        assert normalize_base_url("//a//b/") == "/a/b"

    def test_keeps_scheme_urls(self):
        """URLs with a scheme only lose trailing slashes."""
        assert normalize_base_url("https://cdn.example.com/u/") == "https://cdn.example.com/u"


class TestUploadCacheConfig:
    """Tests for UploadCacheConfig"""

    def test_url_defaults_to_file_url_of_root(self, tmp_path):
        """Without a base URL the root is exposed as file:/<root>."""
        config = UploadCacheConfig(root=tmp_path)

        assert config.url == f"file:/{tmp_path.absolute()}"

    def test_base_url_is_normalized(self, tmp_path):
        config = UploadCacheConfig(root=tmp_path, base_url="system/uploads/")

        assert config.url == "/system/uploads"

    def test_with_overrides_returns_copy(self, tmp_path):
        """Overrides never mutate the original."""
        config = UploadCacheConfig(root=tmp_path)

        other = config.with_overrides(max_age=timedelta(hours=1))

        assert other.max_age == timedelta(hours=1)
        assert config.max_age == timedelta(hours=24)

    def test_from_settings_defaults(self, monkeypatch):
        """Defaults: temp dir root, 24 hour retention, reclamation on."""
        for name in ("UPLOAD_CACHE_ROOT", "UPLOAD_CACHE_MAX_AGE_SECONDS", "UPLOAD_CACHE_KEEP_FILES"):
            monkeypatch.delenv(name, raising=False)

        config = UploadCacheConfig.from_settings(Settings(_env_file=None))

        assert config.root == Path(tempfile.gettempdir()).absolute()
        assert config.max_age == timedelta(seconds=86400)
        assert config.keep_files is False
        assert config.sweep_on_shutdown is True

    def test_from_settings_reads_environment(self, tmp_path, monkeypatch):
        """UPLOAD_CACHE_* variables configure the cache."""
        monkeypatch.setenv("UPLOAD_CACHE_ROOT", str(tmp_path))
        monkeypatch.setenv("UPLOAD_CACHE_URL", "/system/uploads/cache")
        monkeypatch.setenv("UPLOAD_CACHE_MAX_AGE_SECONDS", "60")
        monkeypatch.setenv("UPLOAD_CACHE_KEEP_FILES", "true")

        config = UploadCacheConfig.from_settings(Settings(_env_file=None))

        assert config.root == tmp_path.absolute()
        assert config.url == "/system/uploads/cache"
        assert config.max_age == timedelta(seconds=60)
        assert config.keep_files is True

    def test_rejects_invalid_max_age(self, monkeypatch):
        """Retention age must be positive."""
        monkeypatch.setenv("UPLOAD_CACHE_MAX_AGE_SECONDS", "0")

        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None)

"""
Unit tests for filename sanitizing.

Run: pytest tests/unit/test_filenames.py -v
"""

import pytest

from utils.filenames import clean_name, safe_basename, FALLBACK_BASENAME


class TestCleanName:
    """Tests for clean_name()"""

    def test_drops_directory_traversal(self):
        """Should keep only the final segment: ../../etc/passwd → passwd."""
        assert clean_name("../../etc/passwd") == "passwd"

    def test_collapses_unsafe_characters(self):
        """Spaces and punctuation collapse to single underscores."""
        assert clean_name("a b!!c.txt") == "a_b_c.txt"

    def test_drops_windows_directories(self):
        """Should split on backslashes too (old browsers send full paths)."""
        assert clean_name("C:\\Users\\me\\photo 1.png") == "photo_1.png"

    def test_keeps_allowed_punctuation(self):
        """Should keep _ @ ( ) ~ . - untouched."""
        assert clean_name("me@home_(1)~v2.tar-gz") == "me@home_(1)~v2.tar-gz"

    def test_percent_decodes(self):
        """Should decode %xx sequences before replacing."""
        assert clean_name("my%20file.txt") == "my_file.txt"

    def test_non_ascii_becomes_underscore(self):
        """Decoded non-ASCII characters are replaced."""
        assert clean_name("%C3%A9t%C3%A9.jpg") == "_t_.jpg"

    def test_encoded_slash_cannot_add_directory(self):
        """An encoded slash is decoded after splitting, then replaced."""
        assert "/" not in clean_name("..%2F..%2Fsecret")

    def test_trailing_slash_uses_last_name(self):
        """Should behave like basename for a trailing slash."""
        assert clean_name("uploads/report/") == "report"

    def test_empty_string_returns_empty(self):
        """Should return empty string for empty input."""
        assert clean_name("") == ""

    def test_none_returns_empty(self):
        """Should return empty string for None input."""
        assert clean_name(None) == ""

    @pytest.mark.parametrize("raw", ["name.txt", "a b c", "%%%", "////", "\x00\x01"])
    def test_is_deterministic(self, raw):
        """Same input always gives the same output."""
        assert clean_name(raw) == clean_name(raw)


class TestSafeBasename:
    """Tests for safe_basename()"""

    def test_returns_clean_name(self):
        """Should pass through usable names."""
        assert safe_basename("../report 2024.pdf") == "report_2024.pdf"

    @pytest.mark.parametrize("raw", [None, "", ".", "..", "dir/.."])
    def test_unusable_names_fall_back(self, raw):
        """Empty or dot-only names become the fallback basename."""
        assert safe_basename(raw) == FALLBACK_BASENAME

# tests/test_utils.py
"""Test utilities and helpers"""

from datetime import date

import pytest

from spotify_cleanup.utils.helpers import (
    chunked,
    compute_percent,
    format_date_label,
    pluralize,
    truncate_string,
    unique_in_order
)
from spotify_cleanup.utils.logger import parse_size
from spotify_cleanup.utils.validation import (
    extract_playlist_id,
    validate_playlist_reference
)

PLAYLIST_ID = "37i9dQZF1DXcBWIGoYBM5M"


class TestHelpers:
    """Test helper functions"""

    def test_chunked(self):
        """Test splitting into batches"""
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
        assert list(chunked([], 50)) == []
        assert list(chunked(list(range(100)), 100)) == [list(range(100))]

    def test_chunked_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))

    def test_unique_in_order(self):
        assert unique_in_order(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_format_date_label(self):
        assert format_date_label(date(2024, 1, 9)) == "2024-01-09"

    def test_pluralize(self):
        assert pluralize(1, "track") == "1 track"
        assert pluralize(3, "track") == "3 tracks"
        assert pluralize(0, "entry", "entries") == "0 entries"

    def test_truncate_string(self):
        """Test string truncation"""
        assert truncate_string("Short", 10) == "Short"
        assert truncate_string("A very long playlist name", 10) == "A very ..."

    def test_compute_percent(self):
        assert compute_percent(1, 2) == 50
        assert compute_percent(3, 0) == 0
        assert compute_percent(9, 4) == 100

    def test_parse_size(self):
        """Test log file size parsing"""
        assert parse_size("10MB") == 10 * 1024 * 1024
        assert parse_size("512KB") == 512 * 1024


class TestValidation:
    """Test input validation"""

    @pytest.mark.parametrize("value", [
        PLAYLIST_ID,
        f"https://open.spotify.com/playlist/{PLAYLIST_ID}",
        f"https://open.spotify.com/playlist/{PLAYLIST_ID}?si=abc123",
        f"spotify:playlist:{PLAYLIST_ID}",
    ])
    def test_extract_playlist_id(self, value):
        assert extract_playlist_id(value) == PLAYLIST_ID

    def test_extract_playlist_id_invalid(self):
        with pytest.raises(ValueError):
            extract_playlist_id("https://example.com/not-a-playlist")

    def test_validate_playlist_reference(self):
        assert validate_playlist_reference(PLAYLIST_ID) == (True, None)
        is_valid, error = validate_playlist_reference("nope")
        assert not is_valid
        assert error

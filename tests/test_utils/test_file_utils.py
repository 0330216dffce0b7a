"""
Tests for file utility functions.
"""

import pytest
from unittest.mock import patch

from mutagen import MutagenError

from m4bmaker.utils.file_utils import (
    natural_keys,
    get_mp3_duration_ms,
    total_duration_ms,
    format_duration
)


class TestNaturalKeys:
    """Test cases for natural_keys function."""

    def test_natural_keys_numbers(self):
        """Test natural sorting with numbers."""
        test_strings = ['file1.mp3', 'file10.mp3', 'file2.mp3', 'file20.mp3']
        sorted_strings = sorted(test_strings, key=natural_keys)

        expected = ['file1.mp3', 'file2.mp3', 'file10.mp3', 'file20.mp3']
        assert sorted_strings == expected

    def test_natural_keys_mixed(self):
        """Test natural sorting with chapter-style names."""
        test_strings = ['Chapter 10 - End.mp3', 'Chapter 2 - Middle.mp3', 'Chapter 1 - Start.mp3']
        sorted_strings = sorted(test_strings, key=natural_keys)

        assert sorted_strings == ['Chapter 1 - Start.mp3', 'Chapter 2 - Middle.mp3', 'Chapter 10 - End.mp3']

    def test_natural_keys_no_numbers(self):
        """Test natural sorting without numbers."""
        assert natural_keys('intro.wav') == ['intro.wav']

    def test_natural_keys_extension_digits(self):
        """Test that digits in the extension are split out too."""
        assert natural_keys('intro.mp3') == ['intro.mp', 3, '']


class TestDurations:
    """Test cases for MP3 duration helpers."""

    @patch('m4bmaker.utils.file_utils.MP3')
    def test_get_mp3_duration_ms(self, mock_mp3):
        """Test duration from the MP3 headers."""
        mock_mp3.return_value.info.length = 12.3456

        assert get_mp3_duration_ms('a.mp3') == 12345

    @patch('m4bmaker.utils.file_utils.MP3')
    def test_get_mp3_duration_unreadable(self, mock_mp3):
        """Test that unreadable files count as zero length."""
        mock_mp3.side_effect = MutagenError("can't sync to MPEG frame")

        assert get_mp3_duration_ms('broken.mp3') == 0

    @patch('m4bmaker.utils.file_utils.get_mp3_duration_ms')
    def test_total_duration_ms(self, mock_duration):
        """Test that durations add up."""
        mock_duration.side_effect = [1000, 2500, 0]

        assert total_duration_ms(['a.mp3', 'b.mp3', 'c.mp3']) == 3500


class TestFormatDuration:
    """Test cases for format_duration function."""

    @pytest.mark.parametrize("ms,expected", [
        (0, "0:00:00"),
        (999, "0:00:00"),
        (61000, "0:01:01"),
        (3723500, "1:02:03"),
        (36000000, "10:00:00"),
        (-5, "0:00:00"),
    ])
    def test_format_duration(self, ms, expected):
        """Test H:MM:SS formatting."""
        assert format_duration(ms) == expected

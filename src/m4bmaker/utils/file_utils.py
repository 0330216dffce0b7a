"""
File utility functions for audiobook processing.
"""

import os
import re
import logging
from typing import Iterable, List, Union

from mutagen import MutagenError
from mutagen.mp3 import MP3


def natural_keys(text: str) -> List[Union[int, str]]:
    """
    Natural sorting key function.

    Args:
        text: Text to generate natural sort key for

    Returns:
        List of integers and strings for natural sorting
    """
    def atoi(text):
        return int(text) if text.isdigit() else text
    return [atoi(c) for c in re.split(r'(\d+)', text)]


def get_mp3_duration_ms(file_path: str) -> int:
    """
    Get MP3 duration in milliseconds from its headers.

    Args:
        file_path: Path to the MP3 file

    Returns:
        int: Duration in milliseconds, 0 if the file cannot be parsed
    """
    try:
        return int(MP3(file_path).info.length * 1000)
    except (MutagenError, OSError) as e:
        logging.warning(f'Could not read duration of {file_path}: {e}')
        return 0


def total_duration_ms(file_paths: Iterable[str]) -> int:
    """Sum of the durations of all given MP3 files."""
    return sum(get_mp3_duration_ms(path) for path in file_paths)


def format_duration(milliseconds: int) -> str:
    """
    Format a duration as H:MM:SS.

    Args:
        milliseconds: Duration in milliseconds

    Returns:
        str: Formatted duration
    """
    total_seconds = max(0, milliseconds) // 1000
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours}:{minutes:02d}:{seconds:02d}"

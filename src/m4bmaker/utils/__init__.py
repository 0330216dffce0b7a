"""
Utility modules for audiobook processing.
"""

from .file_utils import natural_keys, get_mp3_duration_ms, total_duration_ms, format_duration
from .progress_tracker import ConsoleProgress, parse_progress_seconds

__all__ = [
    "natural_keys",
    "get_mp3_duration_ms",
    "total_duration_ms",
    "format_duration",
    "ConsoleProgress",
    "parse_progress_seconds"
]

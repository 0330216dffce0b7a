"""
Reading back the tags of a finished audiobook.
"""

import logging
from typing import Any, Dict

from mutagen import MutagenError
from mutagen.mp4 import MP4

from ..exceptions import MetadataError

# MP4 atom names for the tags the engine writes
_TITLE_ATOM = '\xa9nam'
_ARTIST_ATOM = '\xa9ART'
_ALBUM_ATOM = '\xa9alb'


def read_audiobook_tags(file_path: str) -> Dict[str, Any]:
    """
    Read title, author and duration from an M4B file.

    Args:
        file_path: Path to the audiobook

    Returns:
        Dict with 'title', 'author', 'album' (None when absent) and 'duration_ms'

    Raises:
        MetadataError: If the file cannot be parsed as MP4
    """
    try:
        audio = MP4(file_path)
    except (MutagenError, OSError) as e:
        logging.error(f'Could not read tags from {file_path}: {e}')
        raise MetadataError(str(e), file_path) from e

    tags = audio.tags or {}

    def first(atom):
        values = tags.get(atom)
        return str(values[0]) if values else None

    return {
        'title': first(_TITLE_ATOM),
        'author': first(_ARTIST_ATOM),
        'album': first(_ALBUM_ATOM),
        'duration_ms': int(audio.info.length * 1000),
    }

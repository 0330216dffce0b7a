"""
FFmpeg command construction.

The command is always a literal argument vector handed straight to the
operating system; no shell ever parses it, so file names containing quotes,
spaces or shell metacharacters need no escaping.
"""

import shlex
from typing import List, Optional

from .models import ConversionJob
from ..config import ConversionSettings

AUDIOBOOK_GENRE = 'Audiobook'


def build_command(job: ConversionJob, settings: Optional[ConversionSettings] = None) -> List[str]:
    """
    Build the FFmpeg argument vector for a conversion job.

    Each source becomes one -i input, in playback order, and the concat
    filter joins them into a single AAC stream muxed as MP4 (the ipod muxer,
    which is what FFmpeg uses for .m4b).

    Args:
        job: A validated conversion job
        settings: Engine and encoder settings (defaults if omitted)

    Returns:
        List[str]: The argument vector, engine first
    """
    settings = settings or ConversionSettings()
    paths = job.source_paths

    command = [
        settings.engine,
        '-hide_banner',
        '-nostdin',  # Never wait for keyboard input
        '-y',  # The save dialog already confirmed overwriting
    ]

    for path in paths:
        command.extend(['-i', path])

    command.extend([
        '-filter_complex', _concat_filter(len(paths)),
        '-map', '[audio]',
        '-c:a', settings.codec,
        '-b:a', settings.bitrate,
        '-f', 'ipod',
        '-movflags', '+faststart',
    ])

    command.extend(_metadata_args(job))

    # Machine-readable progress on stdout instead of the carriage-return stats line
    command.extend(['-nostats', '-progress', 'pipe:1'])

    command.append(job.destination)
    return command


def _concat_filter(count: int) -> str:
    inputs = ''.join(f'[{index}:a]' for index in range(count))
    return f'{inputs}concat=n={count}:v=0:a=1[audio]'


def _metadata_args(job: ConversionJob) -> List[str]:
    title = job.metadata.title
    author = job.metadata.author
    tags = [
        ('title', title),
        ('artist', author),
        ('album', title),
        ('album_artist', author),
        ('genre', AUDIOBOOK_GENRE),
    ]

    args = []
    for key, value in tags:
        args.extend(['-metadata', f'{key}={value}'])
    return args


def format_command(command: List[str]) -> str:
    """Render a command for logs. Never used to execute anything."""
    return ' '.join(shlex.quote(part) for part in command)

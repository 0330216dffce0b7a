"""
Console presentation of a running conversion.

Consumes the events of a ConversionSession on the main thread and renders
them with a tqdm progress bar driven by FFmpeg's -progress output.
"""

import re
import sys
import time
import logging
from typing import Optional

from tqdm import tqdm

from ..core.models import Cancelled, Completed, ConversionEvent, OutputLine

# Lines written by "-progress pipe:1", e.g. "out_time_us=1234567" or "progress=end"
_PROGRESS_KEY_PATTERN = re.compile(r'^([a-z_0-9]+)=(.*)$')
_TIME_PATTERN = re.compile(r'^(\d+):(\d{2}):(\d{2}(?:\.\d+)?)$')


def parse_progress_line(text: str):
    """
    Split an FFmpeg progress line into key and value.

    Returns:
        tuple: (key, value), or None for ordinary log output
    """
    match = _PROGRESS_KEY_PATTERN.match(text.strip())
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def parse_progress_seconds(text: str) -> Optional[float]:
    """
    Extract the encoded position in seconds from an FFmpeg progress line.

    Args:
        text: One line of engine output

    Returns:
        float: Seconds of audio written so far, or None if the line carries no position
    """
    parsed = parse_progress_line(text)
    if parsed is None:
        return None

    key, value = parsed
    if key == 'out_time_us':
        try:
            return int(value) / 1_000_000
        except ValueError:
            return None
    if key == 'out_time':
        time_match = _TIME_PATTERN.match(value)
        if time_match:
            hours, minutes, seconds = time_match.groups()
            return float(hours) * 3600 + float(minutes) * 60 + float(seconds)
    return None


class ConsoleProgress:
    """
    Renders conversion events to the terminal.

    Use as the on_event subscriber of a session and drain the session
    periodically from the main thread.
    """

    def __init__(self, quiet: bool = False, verbose: bool = False, stream=None):
        """
        Initialize the console renderer.

        Args:
            quiet: Suppress the progress bar
            verbose: Echo every non-progress engine line
            stream: Output stream (default: stderr)
        """
        self.quiet = quiet
        self.verbose = verbose
        self.stream = stream or sys.stderr
        self.total_seconds = 0.0
        self.position = 0.0
        self.outcome: Optional[ConversionEvent] = None
        self.start_time = time.time()
        self.logger = logging.getLogger(__name__)
        self._pbar = None

    def start(self, total_seconds: float = 0.0):
        """
        Show the progress bar.

        Args:
            total_seconds: Combined length of the sources (0 if unknown)
        """
        self.total_seconds = total_seconds
        self.start_time = time.time()
        if self.quiet or self._pbar is not None:
            return

        self._pbar = tqdm(
            total=round(total_seconds, 1) if total_seconds > 0 else None,
            desc="Encoding audiobook",
            unit="s",
            colour="green",
            file=self.stream,
            bar_format=None if total_seconds > 0 else "{desc}: {n:.1f}s [{elapsed}]",
        )

    def __call__(self, event: ConversionEvent):
        self.handle(event)

    def handle(self, event: ConversionEvent):
        """Render one event."""
        if isinstance(event, OutputLine):
            self._handle_line(event)
        elif isinstance(event, (Completed, Cancelled)):
            self.outcome = event
            self.close()

    def _handle_line(self, line: OutputLine):
        text = line.display_text
        seconds = parse_progress_seconds(text)
        if seconds is not None:
            self._advance(seconds)
            return

        if parse_progress_line(text) is not None:
            return

        self.logger.debug(f"ffmpeg: {text}")
        if self.verbose and text.strip():
            self.write(text)

    def _advance(self, seconds: float):
        if seconds < self.position:
            return
        delta = seconds - self.position
        self.position = seconds
        if self._pbar is not None:
            if self._pbar.total and self._pbar.n + delta > self._pbar.total:
                delta = max(0.0, self._pbar.total - self._pbar.n)
            self._pbar.update(round(delta, 3))

    def write(self, message: str):
        """Print a message without breaking the progress bar."""
        if self._pbar is not None:
            self._pbar.write(message, file=self.stream)
        else:
            print(message, file=self.stream)

    def close(self):
        """Close the progress bar."""
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None

    def elapsed(self) -> float:
        """Seconds since the renderer was created."""
        return time.time() - self.start_time

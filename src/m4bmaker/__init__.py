"""
m4bmaker - Combine MP3 files into an M4B audiobook

Drives FFmpeg to join an ordered list of MP3 files into a single tagged
M4B, streaming the engine's output to the caller while it runs.
"""

__version__ = "1.0.0"

from .core.processor import ConversionProcessor, ConversionSession
from .config import ConversionSettings
from .exceptions import M4bMakerError

__all__ = [
    "ConversionProcessor",
    "ConversionSession",
    "ConversionSettings",
    "M4bMakerError",
    "__version__"
]

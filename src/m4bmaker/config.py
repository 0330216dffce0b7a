"""
Conversion settings.

Settings only live for the duration of the process; they are built from
command-line arguments (or by an embedding UI) and never written to disk.
"""

from dataclasses import dataclass

# Bitrates used by the --quality presets
QUALITY_PRESETS = {
    'low': '96k',
    'medium': '128k',
    'high': '192k',
}

DEFAULT_ENGINE = 'ffmpeg'


@dataclass(frozen=True)
class ConversionSettings:
    """Tunables for the engine invocation and the process runner."""
    engine: str = DEFAULT_ENGINE
    bitrate: str = '128k'
    codec: str = 'aac'
    tail_lines: int = 20
    chunk_size: int = 4096
    terminate_grace_seconds: float = 5.0

    @classmethod
    def from_quality(cls, quality: str = 'medium', bitrate: str = None, **kwargs) -> 'ConversionSettings':
        """
        Build settings from a quality preset.

        Args:
            quality: One of the QUALITY_PRESETS keys, or 'custom'
            bitrate: Bitrate to use when quality is 'custom'
            **kwargs: Any other ConversionSettings field

        Returns:
            ConversionSettings: The resulting settings
        """
        if quality == 'custom':
            if not bitrate:
                raise ValueError("A bitrate is required for the custom quality preset")
            return cls(bitrate=bitrate, **kwargs)

        if quality not in QUALITY_PRESETS:
            raise ValueError(f"Unknown quality preset: {quality}")

        return cls(bitrate=QUALITY_PRESETS[quality], **kwargs)

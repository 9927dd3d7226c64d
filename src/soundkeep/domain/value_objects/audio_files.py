"""Audio file classification helpers."""

from pathlib import Path

AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".flac", ".m4a", ".aac", ".ogg", ".opus", ".wav"}
)


def is_audio_file(path: Path) -> bool:
    """Check if the path has a supported audio extension (case-insensitive)."""
    return path.suffix.lower() in AUDIO_EXTENSIONS

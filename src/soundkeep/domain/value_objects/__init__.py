"""Domain value objects."""

from soundkeep.domain.value_objects.audio_files import AUDIO_EXTENSIONS, is_audio_file
from soundkeep.domain.value_objects.cache_key import (
    CACHE_KEY_PATTERN,
    derive_cache_key,
    is_valid_cache_key,
)
from soundkeep.domain.value_objects.hls import (
    MANIFEST_NAME,
    SEGMENT_PATTERN,
    content_type_for,
)

__all__ = [
    "AUDIO_EXTENSIONS",
    "CACHE_KEY_PATTERN",
    "MANIFEST_NAME",
    "SEGMENT_PATTERN",
    "content_type_for",
    "derive_cache_key",
    "is_audio_file",
    "is_valid_cache_key",
]

"""Cache key derivation for derived artifacts.

Hey future me - the cache key IS the invalidation mechanism. It binds an artifact to the
exact version of its source file (id + mtime + size + extension). Re-tag, re-encode or
replace a file and mtime/size move, the key moves, and the old artifact directory is simply
orphaned instead of being served stale. No hashing - the inputs already carry enough entropy
and the key doubles as a directory name, so it has to stay readable and filesystem-safe.
"""

import re

# Anything outside this set is replaced, so the key is safe as a single path component
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

# A sanitized key: same alphabet, never "." or ".." on its own
CACHE_KEY_PATTERN = re.compile(r"^(?!\.{1,2}\Z)[a-zA-Z0-9._-]+\Z")


def derive_cache_key(track_id: int, mtime_ms: int, size_bytes: int, ext: str) -> str:
    """Compute the filesystem-safe resource key for a track version.

    Args:
        track_id: Catalog id of the track
        mtime_ms: Last modification time in integer milliseconds
        size_bytes: File size in bytes
        ext: File extension including the dot (".flac")

    Returns:
        Key like ``t42_1000_2048.flac``
    """
    raw = f"t{int(track_id)}_{int(mtime_ms)}_{int(size_bytes)}{ext}"
    return _UNSAFE_CHARS.sub("_", raw)


def is_valid_cache_key(value: str) -> bool:
    """Check that ``value`` is a sanitized key usable as a directory name."""
    return bool(CACHE_KEY_PATTERN.match(value))

"""Library scanner - walks music directories and keeps the track catalog in sync.

Hey future me - this is the producer behind "scan" jobs. Per configured music root:

1. Walk the directory tree (in a thread, os.walk blocks), keep files with audio extensions
2. Compare (mtime_ms, size_bytes, ext) with what the catalog already has
3. Unchanged files: just stamp last_seen_job_id (no tag parsing at all)
4. New/changed files (or everything with force=True): read tags with mutagen, upsert
5. Delete tracks of that library the current job didn't see

Step 5 is why the job id matters: "not seen by THIS scan" is exact, no timestamps involved.
A music root that is missing or unreadable is skipped entirely - an unmounted NAS must never
wipe the catalog.

Changed tracks get new (mtime, size) and therefore a new HLS cache key. We never touch the
HLS cache here.
"""

import asyncio
import logging
import os
import time
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundkeep.domain.value_objects import AUDIO_EXTENSIONS
from soundkeep.infrastructure.persistence.repositories import (
    LibraryRepository,
    TrackRepository,
)
from soundkeep.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)

# Easy-tag keys (mutagen normalizes ID3/Vorbis/MP4 to these) → catalog columns
_EASY_TAGS = {
    "title": "title",
    "artist": "artist",
    "album": "album",
    "albumartist": "album_artist",
    "genre": "genre",
}


@dataclass
class ScanStats:
    """Counters reported as the scan job result."""

    scanned_files: int = 0
    upserted: int = 0
    skipped: int = 0
    parsed: int = 0
    parse_failed: int = 0
    removed: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class DiscoveredFile:
    """An audio file found on disk, with its version identity."""

    abs_path: Path
    rel_path: str
    mtime_ms: int
    size_bytes: int
    ext: str

    @property
    def fingerprint(self) -> tuple[int, int, str]:
        return (self.mtime_ms, self.size_bytes, self.ext)


def discover_audio_files(root: Path) -> tuple[list[DiscoveredFile], int]:
    """Recursively find audio files below ``root``.

    Returns:
        (audio files, number of non-audio files skipped)
    """
    found: list[DiscoveredFile] = []
    skipped = 0

    def _on_error(error: OSError) -> None:
        logger.warning(f"Can't read directory {error.filename}: {error.strerror}")

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
        for filename in filenames:
            abs_path = Path(dirpath) / filename
            ext = abs_path.suffix.lower()
            if ext not in AUDIO_EXTENSIONS:
                skipped += 1
                continue
            try:
                st = abs_path.stat()
            except OSError as e:
                logger.debug(f"stat failed for {abs_path}: {e}")
                continue
            found.append(
                DiscoveredFile(
                    abs_path=abs_path,
                    rel_path=abs_path.relative_to(root).as_posix(),
                    mtime_ms=st.st_mtime_ns // 1_000_000,
                    size_bytes=st.st_size,
                    ext=ext,
                )
            )

    return found, skipped


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _leading_int(value: Any, digits: int | None = None) -> int | None:
    """Parse "3/12" → 3, "1999-05-01" → 1999 (with digits=4)."""
    if value is None:
        return None
    text = str(value).strip().split("/")[0]
    if digits:
        text = text[:digits]
    try:
        return int(text)
    except ValueError:
        return None


def read_tags(path: Path) -> dict[str, Any]:
    """Read tags and stream info with mutagen.

    Returns an empty dict for formats mutagen doesn't recognize.

    Raises:
        MutagenError: File is recognized but broken
    """
    audio = MutagenFile(path, easy=True)
    if audio is None:
        return {}

    tags: dict[str, Any] = {}
    if audio.tags:
        for tag_key, field_name in _EASY_TAGS.items():
            value = _first(audio.tags.get(tag_key))
            if value:
                tags[field_name] = str(value)
        tags["track_no"] = _leading_int(_first(audio.tags.get("tracknumber")))
        tags["disc_no"] = _leading_int(_first(audio.tags.get("discnumber")))
        tags["year"] = _leading_int(_first(audio.tags.get("date")), digits=4)

    info = getattr(audio, "info", None)
    if info is not None:
        if getattr(info, "length", None):
            tags["duration_ms"] = int(info.length * 1000)
        for attr in ("bitrate", "sample_rate", "channels"):
            value = getattr(info, attr, None)
            if value:
                tags[attr] = int(value)

    return tags


def _chunks(items: list[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class LibraryScannerService:
    """Scans every configured music root for one scan job."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        music_paths: list[Path],
        batch_size: int = 250,
    ) -> None:
        self._session_factory = session_factory
        self._music_paths = music_paths
        self._batch_size = batch_size

    async def scan(self, job_id: int, force: bool = False) -> dict[str, int]:
        """Run a full scan and return the stats dict stored on the job."""
        started = time.monotonic()
        stats = ScanStats()

        for root in self._music_paths:
            await self._scan_root(root, job_id, force, stats)

        stats.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Library scan complete: {stats.scanned_files} files, {stats.upserted} upserted, "
            f"{stats.parse_failed} unreadable, {stats.removed} removed ({stats.duration_ms}ms)",
            extra=stats.to_dict(),
        )
        return stats.to_dict()

    async def _scan_root(
        self, root: Path, job_id: int, force: bool, stats: ScanStats
    ) -> None:
        if not root.is_dir():
            logger.warning(f"Music path {root} is not a directory, skipping it")
            return

        files, non_audio = await asyncio.to_thread(discover_audio_files, root)
        stats.scanned_files += len(files)
        stats.skipped += non_audio

        async with self._session_factory() as session:
            library = await LibraryRepository(session).get_or_create(root)
            library_id = library.id
            known = await TrackRepository(session).get_fingerprints(library_id)
            await session.commit()

        unchanged: list[str] = []
        changed: list[DiscoveredFile] = []
        for f in files:
            if not force and known.get(f.rel_path) == f.fingerprint:
                unchanged.append(f.rel_path)
            else:
                changed.append(f)

        logger.info(
            f"Scanning {root}: {len(files)} audio files, {len(changed)} new or changed"
        )

        if unchanged:
            await self._mark_seen(library_id, unchanged, job_id)

        for batch in _chunks(changed, self._batch_size):
            parsed = await asyncio.to_thread(self._read_batch, batch, stats)
            stats.upserted += await self._write_batch(library_id, parsed, job_id)

        stats.removed += await self._soft_delete_missing(library_id, job_id)

    def _read_batch(
        self, batch: list[DiscoveredFile], stats: ScanStats
    ) -> list[tuple[DiscoveredFile, dict[str, Any]]]:
        parsed: list[tuple[DiscoveredFile, dict[str, Any]]] = []
        for f in batch:
            try:
                tags = read_tags(f.abs_path)
                stats.parsed += 1
            except (MutagenError, OSError) as e:
                # Still catalog the file, just without tags
                logger.warning(f"Could not read tags from {f.rel_path}: {e}")
                tags = {}
                stats.parse_failed += 1
            parsed.append((f, tags))
        return parsed

    @with_db_retry(max_attempts=3)
    async def _write_batch(
        self,
        library_id: int,
        parsed: list[tuple[DiscoveredFile, dict[str, Any]]],
        job_id: int,
    ) -> int:
        # Fresh session per attempt, a failed flush poisons the old one
        async with self._session_factory() as session:
            tracks = TrackRepository(session)
            for f, tags in parsed:
                await tracks.upsert(
                    library_id=library_id,
                    path=f.rel_path,
                    mtime_ms=f.mtime_ms,
                    size_bytes=f.size_bytes,
                    ext=f.ext,
                    tags=tags,
                    seen_by_job_id=job_id,
                )
            await session.commit()
        return len(parsed)

    async def _mark_seen(self, library_id: int, paths: list[str], job_id: int) -> None:
        async with self._session_factory() as session:
            await TrackRepository(session).mark_seen(library_id, paths, job_id)
            await session.commit()

    async def _soft_delete_missing(self, library_id: int, job_id: int) -> int:
        async with self._session_factory() as session:
            removed = await TrackRepository(session).soft_delete_missing(library_id, job_id)
            await session.commit()
        if removed:
            logger.info(f"Marked {removed} tracks deleted, no longer on disk")
        return removed

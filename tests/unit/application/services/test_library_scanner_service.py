"""Tests for LibraryScannerService against a temp music folder and a real SQLite catalog."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from soundkeep.application.services.library_scanner_service import (
    LibraryScannerService,
    discover_audio_files,
    read_tags,
)
from soundkeep.infrastructure.persistence import (
    Database,
    LibraryRepository,
    TrackModel,
    TrackRepository,
)


@pytest.fixture
def music_root(tmp_path: Path) -> Path:
    root = tmp_path / "music"
    (root / "artist" / "album").mkdir(parents=True)
    (root / "artist" / "album" / "01 Song.MP3").write_bytes(b"not really audio")
    (root / "loose.flac").write_bytes(b"also not audio")
    (root / "artist" / "album" / "cover.jpg").write_bytes(b"\xff\xd8")
    return root


@pytest.fixture
def scanner(database: Database, music_root: Path) -> LibraryScannerService:
    return LibraryScannerService(database.session_factory, [music_root], batch_size=1)


async def _fingerprints(database: Database, root: Path) -> dict[str, tuple[int, int, str]]:
    async with database.session_scope() as session:
        library = await LibraryRepository(session).get_or_create(root)
        return await TrackRepository(session).get_fingerprints(library.id)


async def _track_ids(database: Database) -> dict[str, int]:
    """Path → id for every row, soft-deleted ones included."""
    async with database.session_scope() as session:
        rows = await session.execute(select(TrackModel.path, TrackModel.id))
        return {path: track_id for path, track_id in rows.all()}


class TestDiscoverAudioFiles:
    def test_finds_audio_and_counts_the_rest(self, music_root: Path) -> None:
        files, skipped = discover_audio_files(music_root)

        assert skipped == 1
        assert sorted(f.rel_path for f in files) == ["artist/album/01 Song.MP3", "loose.flac"]
        song = next(f for f in files if f.rel_path.endswith("MP3"))
        assert song.ext == ".mp3"
        assert song.size_bytes == len(b"not really audio")
        assert song.fingerprint == (song.mtime_ms, song.size_bytes, ".mp3")


class TestReadTags:
    def test_maps_easy_tags_and_stream_info(self, tmp_path: Path) -> None:
        audio = MagicMock()
        audio.tags = {
            "title": ["Song"],
            "artist": ["Artist"],
            "albumartist": ["Various"],
            "tracknumber": ["3/12"],
            "date": ["1999-05-01"],
        }
        audio.info = SimpleNamespace(length=200.5, bitrate=320000, sample_rate=44100, channels=2)

        with patch(
            "soundkeep.application.services.library_scanner_service.MutagenFile",
            return_value=audio,
        ):
            tags = read_tags(tmp_path / "x.mp3")

        assert tags["title"] == "Song"
        assert tags["artist"] == "Artist"
        assert tags["album_artist"] == "Various"
        assert tags["track_no"] == 3
        assert tags["disc_no"] is None
        assert tags["year"] == 1999
        assert tags["duration_ms"] == 200500
        assert tags["bitrate"] == 320000
        assert tags["sample_rate"] == 44100
        assert tags["channels"] == 2

    def test_unrecognized_file_has_no_tags(self, tmp_path: Path) -> None:
        with patch(
            "soundkeep.application.services.library_scanner_service.MutagenFile",
            return_value=None,
        ):
            assert read_tags(tmp_path / "x.mp3") == {}


class TestScan:
    @pytest.mark.asyncio
    async def test_first_scan_catalogs_every_audio_file(
        self, scanner: LibraryScannerService, database: Database, music_root: Path
    ) -> None:
        stats = await scanner.scan(job_id=1)

        assert stats["scanned_files"] == 2
        assert stats["upserted"] == 2
        assert stats["skipped"] == 1
        assert stats["parsed"] + stats["parse_failed"] == 2
        assert stats["removed"] == 0
        assert stats["duration_ms"] >= 0

        fingerprints = await _fingerprints(database, music_root)
        assert set(fingerprints) == {"artist/album/01 Song.MP3", "loose.flac"}

    @pytest.mark.asyncio
    async def test_unchanged_files_are_not_reparsed(
        self, scanner: LibraryScannerService
    ) -> None:
        await scanner.scan(job_id=1)

        stats = await scanner.scan(job_id=2)

        assert stats["upserted"] == 0
        assert stats["parsed"] + stats["parse_failed"] == 0
        assert stats["removed"] == 0

    @pytest.mark.asyncio
    async def test_force_reparses_everything(self, scanner: LibraryScannerService) -> None:
        await scanner.scan(job_id=1)

        stats = await scanner.scan(job_id=2, force=True)

        assert stats["upserted"] == 2

    @pytest.mark.asyncio
    async def test_changed_file_is_updated(
        self, scanner: LibraryScannerService, database: Database, music_root: Path
    ) -> None:
        await scanner.scan(job_id=1)
        (music_root / "loose.flac").write_bytes(b"a longer replacement file body")

        stats = await scanner.scan(job_id=2)

        assert stats["upserted"] == 1
        fingerprints = await _fingerprints(database, music_root)
        assert fingerprints["loose.flac"][1] == len(b"a longer replacement file body")

    @pytest.mark.asyncio
    async def test_deleted_file_is_removed(
        self, scanner: LibraryScannerService, database: Database, music_root: Path
    ) -> None:
        await scanner.scan(job_id=1)
        (music_root / "loose.flac").unlink()

        stats = await scanner.scan(job_id=2)

        assert stats["removed"] == 1
        assert set(await _fingerprints(database, music_root)) == {"artist/album/01 Song.MP3"}

    @pytest.mark.asyncio
    async def test_missing_file_is_hidden_not_deleted(
        self, scanner: LibraryScannerService, database: Database, music_root: Path
    ) -> None:
        await scanner.scan(job_id=1)
        ids = await _track_ids(database)
        (music_root / "loose.flac").unlink()

        first = await scanner.scan(job_id=2)
        second = await scanner.scan(job_id=3)

        assert first["removed"] == 1
        assert second["removed"] == 0
        assert await _track_ids(database) == ids
        async with database.session_scope() as session:
            assert await TrackRepository(session).get_identity(ids["loose.flac"]) is None

    @pytest.mark.asyncio
    async def test_file_that_comes_back_keeps_its_track_id(
        self, scanner: LibraryScannerService, database: Database, music_root: Path
    ) -> None:
        await scanner.scan(job_id=1)
        ids = await _track_ids(database)
        loose = music_root / "loose.flac"
        parked = music_root.parent / "parked.flac"
        loose.rename(parked)
        await scanner.scan(job_id=2)

        parked.rename(loose)
        stats = await scanner.scan(job_id=3)

        assert stats["removed"] == 0
        assert await _track_ids(database) == ids
        assert set(await _fingerprints(database, music_root)) == set(ids)
        async with database.session_scope() as session:
            identity = await TrackRepository(session).get_identity(ids["loose.flac"])
        assert identity is not None
        assert identity.path == "loose.flac"

    @pytest.mark.asyncio
    async def test_missing_root_never_wipes_catalog(
        self, database: Database, tmp_path: Path, track_factory
    ) -> None:
        unmounted = tmp_path / "nas"
        identity = await track_factory(unmounted, "song.mp3")
        scanner = LibraryScannerService(database.session_factory, [unmounted])

        stats = await scanner.scan(job_id=1)

        assert stats["scanned_files"] == 0
        assert stats["removed"] == 0
        async with database.session_scope() as session:
            assert await TrackRepository(session).get_identity(identity.track_id) is not None

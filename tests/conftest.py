"""Shared fixtures: a throwaway SQLite database per test and helpers to seed the catalog."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from soundkeep.config import Settings
from soundkeep.config.settings import (
    DatabaseSettings,
    StorageSettings,
    WorkerSettings,
)
from soundkeep.domain.entities import TrackIdentity
from soundkeep.infrastructure.persistence import (
    Database,
    JobStore,
    LibraryRepository,
    TrackRepository,
)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every path into tmp_path."""
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        storage=StorageSettings(
            music_paths=[tmp_path / "music"],
            hls_cache_path=tmp_path / "hls",
        ),
        worker=WorkerSettings(embedded=False, poll_interval_seconds=0.01),
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def job_store(database: Database) -> JobStore:
    return JobStore(database.session_factory)


async def add_track(
    db: Database,
    mount_path: Path,
    rel_path: str,
    mtime_ms: int = 1000,
    size_bytes: int = 2048,
) -> TrackIdentity:
    """Insert a library (if needed) and a track, return the track's identity."""
    async with db.session_scope() as session:
        library = await LibraryRepository(session).get_or_create(mount_path)
        track_id = await TrackRepository(session).upsert(
            library_id=library.id,
            path=rel_path,
            mtime_ms=mtime_ms,
            size_bytes=size_bytes,
            ext=Path(rel_path).suffix.lower(),
            tags={},
            seen_by_job_id=None,
        )
    async with db.session_scope() as session:
        identity = await TrackRepository(session).get_identity(track_id)
    assert identity is not None
    return identity


@pytest.fixture
def track_factory(database: Database):
    """``await track_factory(mount_path, "a/song.flac", mtime_ms=..., size_bytes=...)``."""

    async def _factory(mount_path: Path, rel_path: str, **kwargs: int) -> TrackIdentity:
        return await add_track(database, mount_path, rel_path, **kwargs)

    return _factory

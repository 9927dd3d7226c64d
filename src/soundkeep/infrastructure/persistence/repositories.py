"""Repository implementations for the track catalog."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from soundkeep.domain.entities import TrackIdentity
from soundkeep.domain.ports import ITrackCatalog

from .models import LibraryModel, TrackModel, utc_now
from .retry import with_db_retry

# Tag fields the scanner may write; anything else in a tags dict is ignored
_TAG_FIELDS = frozenset(
    {
        "title",
        "artist",
        "album",
        "album_artist",
        "track_no",
        "disc_no",
        "year",
        "genre",
        "duration_ms",
        "bitrate",
        "sample_rate",
        "channels",
    }
)

# Chunk size for IN (...) lists, SQLite's default variable limit is 999
_IN_CHUNK = 500


class LibraryRepository:
    """SQLAlchemy repository for library roots."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_or_create(self, mount_path: Path) -> LibraryModel:
        """Return the library for a mount path, creating it on first scan."""
        key = str(mount_path)
        stmt = select(LibraryModel).where(LibraryModel.mount_path == key)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model:
            return model

        model = LibraryModel(name=mount_path.name or key, mount_path=key)
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_all(self) -> list[LibraryModel]:
        result = await self.session.execute(
            select(LibraryModel).order_by(LibraryModel.id)
        )
        return list(result.scalars().all())


class TrackRepository(ITrackCatalog):
    """SQLAlchemy implementation of the track catalog."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_identity(self, track_id: int) -> TrackIdentity | None:
        """Get the version identity of an active track (joins its library for the mount path).

        Soft-deleted tracks are reported as absent.
        """
        stmt = (
            select(TrackModel, LibraryModel.mount_path)
            .join(LibraryModel, TrackModel.library_id == LibraryModel.id)
            .where(TrackModel.id == track_id, TrackModel.deleted_at.is_(None))
        )
        row = (await self.session.execute(stmt)).first()
        if row is None:
            return None

        model, mount_path = row
        return TrackIdentity(
            track_id=model.id,
            library_id=model.library_id,
            mount_path=mount_path,
            path=model.path,
            mtime_ms=model.mtime_ms,
            size_bytes=model.size_bytes,
            ext=model.ext,
        )

    async def get_fingerprints(self, library_id: int) -> dict[str, tuple[int, int, str]]:
        """Map relative path → (mtime_ms, size_bytes, ext) for every active track of a library.

        Hey future me - the scanner loads this ONCE per library and decides skip/parse in
        memory. One query instead of one SELECT per file on a 50k track library.
        """
        stmt = select(
            TrackModel.path, TrackModel.mtime_ms, TrackModel.size_bytes, TrackModel.ext
        ).where(TrackModel.library_id == library_id, TrackModel.deleted_at.is_(None))
        result = await self.session.execute(stmt)
        return {
            path: (mtime_ms, size_bytes, ext)
            for path, mtime_ms, size_bytes, ext in result.all()
        }

    async def upsert(
        self,
        library_id: int,
        path: str,
        mtime_ms: int,
        size_bytes: int,
        ext: str,
        tags: dict[str, Any],
        seen_by_job_id: int | None,
    ) -> int:
        """Insert or update a track row keyed by (library_id, path).

        A soft-deleted row for the same path is revived in place, keeping its id.

        Returns:
            The track id
        """
        stmt = select(TrackModel).where(
            TrackModel.library_id == library_id, TrackModel.path == path
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            model = TrackModel(library_id=library_id, path=path)
            self.session.add(model)

        model.mtime_ms = mtime_ms
        model.size_bytes = size_bytes
        model.ext = ext
        model.last_seen_job_id = seen_by_job_id
        model.deleted_at = None
        for field_name in _TAG_FIELDS:
            setattr(model, field_name, tags.get(field_name))

        await self.session.flush()
        return model.id

    @with_db_retry(max_attempts=3)
    async def mark_seen(
        self, library_id: int, paths: Iterable[str], job_id: int
    ) -> int:
        """Stamp unchanged tracks as seen by a scan job."""
        pending = list(paths)
        touched = 0
        for start in range(0, len(pending), _IN_CHUNK):
            chunk = pending[start : start + _IN_CHUNK]
            result = await self.session.execute(
                update(TrackModel)
                .where(
                    TrackModel.library_id == library_id,
                    TrackModel.path.in_(chunk),
                    TrackModel.deleted_at.is_(None),
                )
                .values(last_seen_job_id=job_id)
                .execution_options(synchronize_session=False)
            )
            touched += result.rowcount or 0
        return touched

    @with_db_retry(max_attempts=3)
    async def soft_delete_missing(self, library_id: int, job_id: int) -> int:
        """Mark active tracks of a library that the given scan job did not see as deleted.

        Returns:
            Number of tracks newly marked deleted
        """
        result = await self.session.execute(
            update(TrackModel)
            .where(
                TrackModel.library_id == library_id,
                TrackModel.deleted_at.is_(None),
                or_(
                    TrackModel.last_seen_job_id.is_(None),
                    TrackModel.last_seen_job_id != job_id,
                ),
            )
            .values(deleted_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

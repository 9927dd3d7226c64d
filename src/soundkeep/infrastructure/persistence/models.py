"""SQLAlchemy ORM models for SoundKeep."""

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Postgres gets BIGSERIAL ids, SQLite needs a plain INTEGER PRIMARY KEY to autoincrement
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - that's a "naive" datetime and job ages get computed wrong on hosts with a
# local TZ.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Timestamps come back naive. Run every
# datetime read from a row through this before comparing it with utc_now() or you get the
# "can't compare offset-naive and offset-aware" TypeError.
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models.

    All models inherit from this to share one metadata registry.
    """

    pass


class LibraryModel(Base):
    """A mounted music root. Tracks store paths relative to ``mount_path``."""

    __tablename__ = "libraries"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mount_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    tracks: Mapped[list["TrackModel"]] = relationship(
        back_populates="library", cascade="all, delete-orphan"
    )


# Listen up, mtime_ms/size_bytes/ext are the version identity of the file. The HLS cache key
# is derived from exactly these three (plus the id), so a re-tagged or replaced file gets a
# fresh artifact and the old one is simply never referenced again.
class TrackModel(Base):
    """One audio file in a library, with tags read by the scanner."""

    __tablename__ = "tracks"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False
    )
    path: Mapped[str] = mapped_column(Text, nullable=False)
    mtime_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ext: Mapped[str] = mapped_column(String(16), nullable=False)

    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    artist: Mapped[str | None] = mapped_column(Text, nullable=True)
    album: Mapped[str | None] = mapped_column(Text, nullable=True)
    album_artist: Mapped[str | None] = mapped_column(Text, nullable=True)
    track_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    disc_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    genre: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bitrate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sample_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    channels: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Stamped by every scan job that sees the file; rows left behind get deleted_at set
    last_seen_job_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Soft delete. A file that comes back (remounted share) keeps its id, and with it its
    # cache key and any finished HLS artifact
    deleted_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    library: Mapped[LibraryModel] = relationship(back_populates="tracks")

    __table_args__ = (
        UniqueConstraint("library_id", "path", name="uq_tracks_library_path"),
        Index("ix_tracks_last_seen", "library_id", "last_seen_job_id"),
    )


# Hey future me, this table is the whole queue. Rows are never deleted and never go back to
# queued. A retry is a NEW row for the same resource_key, so history stays intact and the
# "latest by id" lookups answer every status question.
class JobModel(Base):
    """Durable background job record."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    # scan | transcode
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    resource_key: Mapped[str] = mapped_column(Text, nullable=False)
    # queued | running | done | failed
    state: Mapped[str] = mapped_column(String(16), nullable=False)
    requested_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    result: Mapped[Any] = mapped_column(JSON(none_as_null=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    started_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # claim_next: oldest queued job of a kind
        Index("ix_jobs_kind_state_id", "kind", "state", "id"),
        # orchestrator lookups: latest job for a resource
        Index("ix_jobs_kind_resource_id", "kind", "resource_key", "id"),
    )

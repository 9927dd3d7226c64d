"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

from soundkeep.domain.entities import Job, JobKind, JobState, TrackIdentity


class IJobStore(ABC):
    """Durable table of work items with atomic claim.

    Hey future me - this is the ONLY shared mutable resource between request handlers and
    workers. There is no in-process queue: everything an orchestrator or worker knows about
    pending work comes from here.
    """

    @abstractmethod
    async def enqueue(
        self,
        kind: JobKind,
        resource_key: str,
        requested_by: str | None,
        payload: dict[str, Any] | None = None,
    ) -> Job:
        """Insert a queued job. No deduplication - callers look up first."""
        ...

    @abstractmethod
    async def claim_next(self, kind: JobKind) -> Job | None:
        """Atomically move the oldest queued job of ``kind`` to running."""
        ...

    @abstractmethod
    async def finish(
        self,
        job_id: int,
        state: JobState,
        result: Any = None,
        error: str | None = None,
    ) -> bool:
        """Move a running job to done or failed. Returns False if nothing changed."""
        ...

    @abstractmethod
    async def latest_by_resource_key(
        self, kind: JobKind, resource_key: str
    ) -> Job | None:
        """Most recent job (by id) for a kind + key pair, in any state."""
        ...

    @abstractmethod
    async def latest_done_by_resource_key(
        self, kind: JobKind, resource_key: str
    ) -> Job | None:
        """Most recent done job for a kind + key pair."""
        ...

    @abstractmethod
    async def get(self, job_id: int) -> Job | None:
        """Fetch one job by id."""
        ...

    @abstractmethod
    async def fail_stale_running(
        self, kind: JobKind, started_before: datetime, error: str
    ) -> int:
        """Fail running jobs started before the cutoff. Returns the count."""
        ...


class ITrackCatalog(ABC):
    """Read access to the library catalog for version identity."""

    @abstractmethod
    async def get_identity(self, track_id: int) -> TrackIdentity | None:
        """Current identity of a track, or None if it no longer exists."""
        ...


class IHlsTranscoder(ABC):
    """External producer that turns one audio file into an HLS directory."""

    @abstractmethod
    async def transcode(self, source: Path, out_dir: Path) -> None:
        """Write ``index.m3u8`` and its segments into ``out_dir``.

        Raises:
            ProducerFailure: If the external tool fails
        """
        ...


__all__ = [
    "IHlsTranscoder",
    "IJobStore",
    "ITrackCatalog",
]

"""Domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from soundkeep.domain.value_objects.cache_key import derive_cache_key


class JobKind(str, Enum):
    """Kind of background work a job row describes."""

    SCAN = "scan"
    TRANSCODE = "transcode"


# Hey future me, this is THE job state machine: queued → running → {done | failed}.
# Nothing leaves done/failed, and running is only reachable through the store's claim
# statement. The store guards every UPDATE with the source state, so an illegal
# transition simply matches zero rows instead of corrupting history.
class JobState(str, Enum):
    """Lifecycle state of a job."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    def can_transition_to(self, target: "JobState") -> bool:
        """Check whether moving from this state to ``target`` is legal."""
        return target.value in _ALLOWED_TRANSITIONS[self.value]

    @property
    def is_active(self) -> bool:
        """Queued or running - work that is still in flight."""
        return self in (JobState.QUEUED, JobState.RUNNING)

    @property
    def is_terminal(self) -> bool:
        """Done or failed - no further transitions."""
        return self in (JobState.DONE, JobState.FAILED)


_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    JobState.QUEUED.value: frozenset({JobState.RUNNING.value}),
    JobState.RUNNING.value: frozenset({JobState.DONE.value, JobState.FAILED.value}),
    JobState.DONE.value: frozenset(),
    JobState.FAILED.value: frozenset(),
}

# Scans are not per-file artifacts; every scan job shares this resource key so the
# same "join in-flight work" lookup applies to them.
SCAN_RESOURCE_KEY = "library"


@dataclass
class Job:
    """A durable record of one unit of background work and its outcome."""

    id: int
    kind: JobKind
    resource_key: str
    state: JobState
    requested_at: datetime
    requested_by: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: str | None = None

    @property
    def track_id(self) -> int | None:
        """Source track for transcode jobs."""
        value = self.payload.get("track_id")
        return int(value) if value is not None else None

    @property
    def is_active(self) -> bool:
        return self.state.is_active


@dataclass(frozen=True)
class TrackIdentity:
    """Version-relevant facts about a catalog track.

    Any change to mtime_ms, size_bytes or ext produces a different cache key.
    """

    track_id: int
    library_id: int
    mount_path: str
    path: str
    mtime_ms: int
    size_bytes: int
    ext: str

    @property
    def cache_key(self) -> str:
        return derive_cache_key(self.track_id, self.mtime_ms, self.size_bytes, self.ext)


@dataclass(frozen=True)
class Principal:
    """An already-authenticated caller, as resolved by the gateway.

    ``allowed_library_ids`` of None means every library is visible.
    """

    user_id: str
    role: str = "user"
    allowed_library_ids: frozenset[int] | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_access_library(self, library_id: int) -> bool:
        if self.allowed_library_ids is None:
            return True
        return library_id in self.allowed_library_ids


class RequestState(str, Enum):
    """Answer to an artifact request."""

    READY = "ready"
    PENDING = "pending"


@dataclass(frozen=True)
class ArtifactRequestResult:
    """Outcome of the idempotent "produce artifact" request."""

    state: RequestState
    job: Job
    resource_key: str
    manifest_ref: str | None = None

    @property
    def ready(self) -> bool:
        return self.state == RequestState.READY


@dataclass(frozen=True)
class ArtifactStatus:
    """Outcome of a status poll. ``job`` is None when nothing was requested yet."""

    resource_key: str
    job: Job | None = None
    manifest_ref: str | None = None

    @property
    def state(self) -> str:
        return self.job.state.value if self.job else "missing"

    @property
    def ready(self) -> bool:
        return self.job is not None and self.job.state == JobState.DONE

    @property
    def error(self) -> str | None:
        return self.job.error if self.job else None


__all__ = [
    "SCAN_RESOURCE_KEY",
    "ArtifactRequestResult",
    "ArtifactStatus",
    "Job",
    "JobKind",
    "JobState",
    "Principal",
    "RequestState",
    "TrackIdentity",
]

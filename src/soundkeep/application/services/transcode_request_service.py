"""Request orchestration for on-demand HLS transcodes.

Hey future me - this is the idempotent "give me the HLS version of track X" entry point.
It NEVER transcodes anything itself. It looks at the job table and answers one of:

1. a done job exists for the current file version  → ready
2. a queued/running job exists for it               → pending (join that job)
3. nothing usable                                   → enqueue a new job, pending

The cache key encodes mtime/size/ext, so once a file changes on disk the old done job no
longer matches and the next request transparently produces a fresh artifact.

KNOWN RACE: two requests for the same cold key can both miss the active-job lookup and both
enqueue. Both jobs run, both produce identical output for the same key and the second rename
loses harmlessly. We accept that instead of taking a lock on the request path.
"""

import logging

from soundkeep.domain.entities import (
    ArtifactRequestResult,
    ArtifactStatus,
    JobKind,
    JobState,
    Principal,
    RequestState,
    TrackIdentity,
)
from soundkeep.domain.exceptions import EntityNotFoundException
from soundkeep.domain.ports import IJobStore, ITrackCatalog
from soundkeep.domain.value_objects.hls import MANIFEST_NAME

logger = logging.getLogger(__name__)


def manifest_ref_for(resource_key: str) -> str:
    """Manifest location relative to the cache root."""
    return f"{resource_key}/{MANIFEST_NAME}"


class TranscodeRequestService:
    """Idempotent request/status protocol for transcode artifacts."""

    def __init__(self, job_store: IJobStore, track_catalog: ITrackCatalog) -> None:
        self._job_store = job_store
        self._tracks = track_catalog

    async def resolve_track(self, principal: Principal, track_id: int) -> TrackIdentity:
        """Load a track the principal may see.

        A track in a hidden library is reported as missing, exactly like a track that
        doesn't exist.

        Raises:
            EntityNotFoundException: Unknown track, or library not visible
        """
        identity = await self._tracks.get_identity(track_id)
        if identity is None or not principal.can_access_library(identity.library_id):
            raise EntityNotFoundException("Track", track_id)
        return identity

    async def request(self, principal: Principal, track_id: int) -> ArtifactRequestResult:
        """Return the ready artifact, join in-flight work, or enqueue a transcode."""
        identity = await self.resolve_track(principal, track_id)
        key = identity.cache_key

        done = await self._job_store.latest_done_by_resource_key(JobKind.TRANSCODE, key)
        if done is not None:
            return ArtifactRequestResult(
                state=RequestState.READY,
                job=done,
                resource_key=key,
                manifest_ref=manifest_ref_for(key),
            )

        latest = await self._job_store.latest_by_resource_key(JobKind.TRANSCODE, key)
        if latest is not None and latest.state.is_active:
            logger.debug(f"Track {track_id} joins {latest.state.value} job {latest.id}")
            return ArtifactRequestResult(
                state=RequestState.PENDING, job=latest, resource_key=key
            )

        job = await self._job_store.enqueue(
            JobKind.TRANSCODE,
            key,
            requested_by=principal.user_id,
            payload={"track_id": identity.track_id},
        )
        logger.info(
            f"Queued transcode job {job.id} for track {track_id}",
            extra={"job_id": job.id, "resource_key": key, "requested_by": principal.user_id},
        )
        return ArtifactRequestResult(state=RequestState.PENDING, job=job, resource_key=key)

    async def status(self, principal: Principal, track_id: int) -> ArtifactStatus:
        """Report the latest job for the track's current version. Never enqueues."""
        identity = await self.resolve_track(principal, track_id)
        key = identity.cache_key

        latest = await self._job_store.latest_by_resource_key(JobKind.TRANSCODE, key)
        manifest_ref = (
            manifest_ref_for(key)
            if latest is not None and latest.state == JobState.DONE
            else None
        )
        return ArtifactStatus(resource_key=key, job=latest, manifest_ref=manifest_ref)

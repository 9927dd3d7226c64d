"""Safe lookup of cached HLS artifact files.

Hey future me - the artifact directory on disk is NOT the source of truth, the job table is.
A directory can exist without a done job (a worker crashed after ffmpeg wrote half the
segments into a tmp dir, someone copied files by hand, ...). We only serve files for a key
that has a done transcode job, and we only serve files that stay inside that key's
directory after resolving symlinks and "..".
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from soundkeep.application.services.transcode_request_service import (
    TranscodeRequestService,
)
from soundkeep.domain.entities import JobKind, Principal
from soundkeep.domain.exceptions import (
    EntityNotFoundException,
    InvalidPathError,
    NotReadyError,
)
from soundkeep.domain.ports import IJobStore
from soundkeep.domain.value_objects import (
    MANIFEST_NAME,
    content_type_for,
    is_valid_cache_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactFile:
    """A verified, servable file inside an artifact directory."""

    path: Path
    content_type: str
    resource_key: str
    file_name: str


def validate_file_name(file_name: str) -> None:
    """Reject file references that could leave the artifact directory.

    Raises:
        InvalidPathError: Empty, absolute, backslash, NUL or any "."/".." component
    """
    if not file_name:
        raise InvalidPathError("empty file name", file_name)
    if "\x00" in file_name or "\\" in file_name:
        raise InvalidPathError("invalid characters in file name", file_name)
    if PurePosixPath(file_name).is_absolute():
        raise InvalidPathError("absolute file name", file_name)
    if any(part in ("", ".", "..") for part in file_name.split("/")):
        raise InvalidPathError("invalid path component", file_name)


class ArtifactService:
    """Resolves (resource key, file name) pairs to files that are safe to stream."""

    def __init__(
        self,
        job_store: IJobStore,
        cache_root: Path,
        transcode_requests: TranscodeRequestService | None = None,
    ) -> None:
        self._job_store = job_store
        self._cache_root = cache_root.resolve()
        self._transcode_requests = transcode_requests

    def resolve_path(self, resource_key: str, file_name: str) -> Path:
        """Join and resolve a file path, enforcing containment.

        The resolved path must be inside the artifact directory, which itself must be
        inside the cache root. Symlinks pointing outside fail this check too.
        """
        if not is_valid_cache_key(resource_key):
            raise InvalidPathError("invalid resource key", resource_key)
        validate_file_name(file_name)

        artifact_dir = (self._cache_root / resource_key).resolve()
        target = (artifact_dir / file_name).resolve()

        if not artifact_dir.is_relative_to(self._cache_root) or artifact_dir == self._cache_root:
            raise InvalidPathError("artifact directory escapes cache root", resource_key)
        if not target.is_relative_to(artifact_dir) or target == artifact_dir:
            raise InvalidPathError("file escapes artifact directory", file_name)
        return target

    async def open_file(self, resource_key: str, file_name: str) -> ArtifactFile:
        """Verify and return an artifact file for streaming.

        Raises:
            InvalidPathError: Malformed key or file name, or containment violated
            NotReadyError: No done transcode job for the key (stray files are ignored)
            EntityNotFoundException: File missing or not a regular file
        """
        path = self.resolve_path(resource_key, file_name)

        done = await self._job_store.latest_done_by_resource_key(
            JobKind.TRANSCODE, resource_key
        )
        if done is None:
            raise NotReadyError(resource_key)

        if not path.is_file():
            raise EntityNotFoundException("Artifact file", f"{resource_key}/{file_name}")

        return ArtifactFile(
            path=path,
            content_type=content_type_for(file_name),
            resource_key=resource_key,
            file_name=file_name,
        )

    async def open_track_file(
        self, principal: Principal, track_id: int, file_name: str
    ) -> ArtifactFile:
        """Same as open_file, for the current version of a track."""
        if self._transcode_requests is None:
            raise RuntimeError("ArtifactService was built without a track resolver")
        identity = await self._transcode_requests.resolve_track(principal, track_id)
        return await self.open_file(identity.cache_key, file_name)

    async def read_manifest(self, principal: Principal, track_id: int) -> str:
        """Read the stored manifest text of a track's current artifact."""
        artifact = await self.open_track_file(principal, track_id, MANIFEST_NAME)
        return await asyncio.to_thread(artifact.path.read_text, encoding="utf-8")

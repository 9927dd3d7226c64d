"""Transcode job handler - turns a claimed transcode job into a published HLS directory.

Hey future me - the publish is ATOMIC. ffmpeg writes into ``<key>.tmp_<ns>`` and only a
complete directory is renamed to ``<key>``. A crash mid-transcode leaves a tmp dir behind,
never a half-written artifact under the real key. Readers additionally require a done job,
so even a hand-copied directory is never served without one.
"""

import asyncio
import logging
import shutil
import time
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundkeep.domain.entities import Job
from soundkeep.domain.exceptions import ProducerFailure
from soundkeep.domain.ports import IHlsTranscoder
from soundkeep.domain.value_objects import MANIFEST_NAME
from soundkeep.infrastructure.persistence.repositories import TrackRepository

logger = logging.getLogger(__name__)


def safe_join_mount(mount_path: str, rel_path: str) -> Path:
    """Resolve a catalog path below its library mount.

    Raises:
        ProducerFailure: The path leaves the mount (corrupt catalog row, symlink games)
    """
    base = Path(mount_path).resolve()
    source = (base / rel_path).resolve()
    if source == base or not source.is_relative_to(base):
        raise ProducerFailure("invalid path")
    return source


class TranscodeJobHandler:
    """Handler for ``transcode`` jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transcoder: IHlsTranscoder,
        cache_root: Path,
    ) -> None:
        self._session_factory = session_factory
        self._transcoder = transcoder
        self._cache_root = cache_root

    async def handle(self, job: Job) -> dict[str, Any]:
        """Produce the artifact for ``job.resource_key``.

        Returns:
            ``{"out_dir": <resource_key>}``, stored as the job result
        """
        track_id = job.track_id
        if track_id is None:
            raise ProducerFailure("transcode job has no track_id")

        async with self._session_factory() as session:
            identity = await TrackRepository(session).get_identity(track_id)
        if identity is None:
            raise ProducerFailure("track_not_found")

        # The file changed between request and claim; transcoding now would store the NEW
        # file under the OLD version's key. The next request enqueues under the new key.
        if identity.cache_key != job.resource_key:
            raise ProducerFailure(
                f"track {track_id} changed since the request ({identity.cache_key})"
            )

        source = safe_join_mount(identity.mount_path, identity.path)
        out_dir = self._cache_root / job.resource_key

        if (out_dir / MANIFEST_NAME).is_file():
            # Published by an earlier job for the same key (e.g. two racing requests)
            logger.info(f"Artifact {job.resource_key} already published, reusing it")
            return {"out_dir": job.resource_key}

        tmp_dir = self._cache_root / f"{job.resource_key}.tmp_{time.time_ns()}"
        tmp_dir.mkdir(parents=True, exist_ok=False)
        try:
            await self._transcoder.transcode(source, tmp_dir)
            if not (tmp_dir / MANIFEST_NAME).is_file():
                raise ProducerFailure("transcoder produced no manifest")
            self._publish(tmp_dir, out_dir)
        finally:
            if tmp_dir.exists():
                await asyncio.to_thread(shutil.rmtree, tmp_dir, True)

        logger.info(f"Published HLS artifact {job.resource_key} for track {track_id}")
        return {"out_dir": job.resource_key}

    def _publish(self, tmp_dir: Path, out_dir: Path) -> None:
        try:
            tmp_dir.rename(out_dir)
        except OSError:
            # Someone else published the same key first; their copy is just as good
            if (out_dir / MANIFEST_NAME).is_file():
                logger.info(f"Lost publish race for {out_dir.name}, keeping existing copy")
                return
            raise

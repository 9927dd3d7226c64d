"""Request orchestration for library scans."""

import logging

from soundkeep.domain.entities import SCAN_RESOURCE_KEY, Job, JobKind, Principal
from soundkeep.domain.exceptions import AuthorizationError, EntityNotFoundException
from soundkeep.domain.ports import IJobStore

logger = logging.getLogger(__name__)


class ScanRequestService:
    """Same join-or-enqueue protocol as transcodes, keyed by the single "library" key.

    A finished scan is NOT a cached artifact, so unlike transcodes a done job never
    short-circuits a new request. The library may have changed since.
    """

    def __init__(self, job_store: IJobStore) -> None:
        self._job_store = job_store

    async def request_scan(
        self, principal: Principal | None, force: bool = False
    ) -> tuple[Job, bool]:
        """Join the active scan or enqueue a new one.

        Args:
            principal: Caller; None for system triggers (scheduler, startup)
            force: Re-read tags even for files whose mtime/size didn't change

        Returns:
            (job, created) - created is False when an active scan was joined

        Raises:
            AuthorizationError: Principal is not an admin
        """
        if principal is not None and not principal.is_admin:
            raise AuthorizationError("Library scans require the admin role")

        latest = await self._job_store.latest_by_resource_key(
            JobKind.SCAN, SCAN_RESOURCE_KEY
        )
        if latest is not None and latest.state.is_active:
            logger.debug(f"Scan request joins {latest.state.value} job {latest.id}")
            return latest, False

        job = await self._job_store.enqueue(
            JobKind.SCAN,
            SCAN_RESOURCE_KEY,
            requested_by=principal.user_id if principal else None,
            payload={"force": force},
        )
        logger.info(
            f"Queued library scan job {job.id}",
            extra={"job_id": job.id, "force": force},
        )
        return job, True

    async def latest_status(self) -> Job | None:
        """Most recent scan job, or None if no scan was ever requested."""
        return await self._job_store.latest_by_resource_key(
            JobKind.SCAN, SCAN_RESOURCE_KEY
        )

    async def get_job(self, job_id: int) -> Job:
        """Raises EntityNotFoundException for unknown ids and for non-scan jobs."""
        job = await self._job_store.get(job_id)
        if job is None or job.kind != JobKind.SCAN:
            raise EntityNotFoundException("Scan job", job_id)
        return job

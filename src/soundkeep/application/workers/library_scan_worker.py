# Hey future me - this handler runs SCAN jobs claimed by a JobWorker. All the real work is in
# LibraryScannerService; this only translates the job payload and hands back the stats
# dict that ends up in jobs.result.
"""Library scan handler for background scanning jobs."""

import logging
from typing import Any

from soundkeep.application.services.library_scanner_service import LibraryScannerService
from soundkeep.domain.entities import Job

logger = logging.getLogger(__name__)


class LibraryScanJobHandler:
    """Handler for ``scan`` jobs."""

    def __init__(self, scanner: LibraryScannerService) -> None:
        self._scanner = scanner

    async def handle(self, job: Job) -> dict[str, Any]:
        """Scan every music root.

        Payload:
            force: Re-read tags of unchanged files too (default False)

        Returns:
            Scan statistics dict
        """
        force = bool(job.payload.get("force", False))
        logger.info(f"Starting library scan (job {job.id}, force={force})")
        return await self._scanner.scan(job.id, force=force)

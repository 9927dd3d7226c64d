"""Rescan Scheduler - periodically requests a library scan.

Hey future me - this does NOT scan anything. Every interval it goes through the same
ScanRequestService as the admin endpoint, so a scheduled tick while a scan is queued or
running just joins that job instead of piling up a second one.
"""

import asyncio
import logging

from soundkeep.application.services.scan_request_service import ScanRequestService

logger = logging.getLogger(__name__)


class RescanScheduler:
    """Requests a system scan every ``interval_seconds``."""

    def __init__(self, scan_requests: ScanRequestService, interval_seconds: int) -> None:
        self._scan_requests = scan_requests
        self._interval = interval_seconds
        self._running = False

    async def tick(self) -> None:
        job, created = await self._scan_requests.request_scan(None)
        if created:
            logger.info(f"Scheduled library rescan queued as job {job.id}")
        else:
            logger.debug(f"Scheduled rescan joined {job.state.value} job {job.id}")

    async def start(self) -> None:
        """Run until stop() is called. The first tick happens after one interval."""
        self._running = True
        logger.info(f"RescanScheduler started (interval={self._interval}s)")

        while self._running:
            await asyncio.sleep(self._interval)
            if not self._running:
                break
            try:
                await self.tick()
            except Exception as e:
                # Log but don't crash - we'll try again next interval
                logger.exception(f"RescanScheduler error: {e}")

    def stop(self) -> None:
        """Signal the scheduler to stop."""
        self._running = False
        logger.info("RescanScheduler stopping...")

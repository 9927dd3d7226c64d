"""Stale Job Sweeper - fails jobs stuck in "running".

Hey future me - a worker killed mid-job (OOM, container restart, cancelled on shutdown)
leaves its row "running" forever, and the request orchestrator keeps telling clients to
wait for it. This sweeper marks such rows failed after a generous timeout, so the next
request enqueues a fresh job. Off by default: pick a timeout well above your slowest
transcode and your longest library scan.
"""

import asyncio
import logging
from datetime import timedelta

from soundkeep.domain.entities import JobKind
from soundkeep.domain.ports import IJobStore
from soundkeep.infrastructure.persistence.models import utc_now

logger = logging.getLogger(__name__)


class StaleJobSweeper:
    """Periodically fails running jobs older than ``timeout_seconds``."""

    def __init__(
        self,
        job_store: IJobStore,
        timeout_seconds: int,
        check_interval: int = 60,
    ) -> None:
        self._job_store = job_store
        self._timeout = timeout_seconds
        self._check_interval = check_interval
        self._running = False

    async def sweep(self) -> int:
        """Fail every stale running job once. Returns how many were failed."""
        cutoff = utc_now() - timedelta(seconds=self._timeout)
        error = f"stale: still running after {self._timeout}s"
        total = 0
        for kind in JobKind:
            total += await self._job_store.fail_stale_running(kind, cutoff, error)
        return total

    async def start(self) -> None:
        self._running = True
        logger.info(
            f"StaleJobSweeper started (timeout={self._timeout}s, "
            f"check_interval={self._check_interval}s)"
        )

        while self._running:
            try:
                await self.sweep()
            except Exception as e:
                logger.exception(f"StaleJobSweeper error: {e}")
            await asyncio.sleep(self._check_interval)

    def stop(self) -> None:
        self._running = False
        logger.info("StaleJobSweeper stopping...")

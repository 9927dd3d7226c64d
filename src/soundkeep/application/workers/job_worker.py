"""Job Worker - polls the job store, runs producers, records outcomes.

Hey future me - workers share NOTHING but the jobs table. Run one per process, ten per
process, or ten processes; claim_next() guarantees every queued job goes to exactly one
of them. There is no notification channel: an idle worker just sleeps poll_interval and
asks again.

ONE ITERATION (run_once):
1. For each kind in priority order (transcode first, a user is waiting on it; scans are
   background housekeeping), try to claim a job
2. Run the handler registered for that kind
3. finish(done, result) - or finish(failed, str(exc)) if the handler raised

A producer failure NEVER escapes run_once. Storage errors do (claim/finish can't work
without the database), and start() logs them and backs off.

Failed jobs are never retried here. The next request for the same key enqueues a fresh job.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from soundkeep.domain.entities import Job, JobKind, JobState
from soundkeep.domain.ports import IJobStore
from soundkeep.infrastructure.observability.logging import reset_job_id, set_job_id

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[Any]]

DEFAULT_KIND_PRIORITY: tuple[JobKind, ...] = (JobKind.TRANSCODE, JobKind.SCAN)


def describe_error(exc: BaseException) -> str:
    """Error text stored on a failed job; falls back to the class name for empty messages."""
    return str(exc) or type(exc).__name__


class JobWorker:
    """One polling loop that processes one job at a time."""

    def __init__(
        self,
        job_store: IJobStore,
        handlers: dict[JobKind, JobHandler],
        poll_interval: float = 2.0,
        name: str = "worker",
        kind_priority: Sequence[JobKind] = DEFAULT_KIND_PRIORITY,
    ) -> None:
        self._job_store = job_store
        self._handlers = handlers
        self._poll_interval = poll_interval
        self._name = name
        self._kinds = [kind for kind in kind_priority if kind in handlers]
        self._running = False
        self._wake = asyncio.Event()
        self._stats = {"done": 0, "failed": 0}

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> Job | None:
        """Claim and process at most one job.

        Returns:
            The claimed job (as it was when claimed), or None if nothing was queued
        """
        for kind in self._kinds:
            job = await self._job_store.claim_next(kind)
            if job is not None:
                await self._process(job)
                return job
        return None

    async def _process(self, job: Job) -> None:
        token = set_job_id(job.id)
        try:
            logger.info(
                f"{self._name} claimed {job.kind.value} job {job.id} ({job.resource_key})",
                extra={"job_id": job.id, "kind": job.kind.value},
            )
            handler = self._handlers[job.kind]
            try:
                result = await handler(job)
            except Exception as e:
                error = describe_error(e)
                logger.warning(
                    f"{job.kind.value} job {job.id} failed: {error}",
                    exc_info=True,
                    extra={"job_id": job.id, "kind": job.kind.value},
                )
                await self._job_store.finish(job.id, JobState.FAILED, error=error)
                self._stats["failed"] += 1
                return

            await self._job_store.finish(job.id, JobState.DONE, result=result)
            self._stats["done"] += 1
            logger.info(
                f"{job.kind.value} job {job.id} done",
                extra={"job_id": job.id, "kind": job.kind.value},
            )
        finally:
            reset_job_id(token)

    async def start(self) -> None:
        """Poll until stop() is called."""
        self._running = True
        self._wake.clear()
        logger.info(
            f"{self._name} started (kinds={[k.value for k in self._kinds]}, "
            f"poll_interval={self._poll_interval}s)"
        )

        while self._running:
            try:
                processed = await self.run_once()
            except Exception as e:
                # Database down or similar - back off and try again
                logger.exception(f"{self._name} iteration failed: {e}")
                processed = None

            if processed is None and self._running:
                await self._idle()

        logger.info(f"{self._name} stopped")

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass

    def stop(self) -> None:
        """Signal the loop to exit after the current job."""
        self._running = False
        self._wake.set()

    def get_stats(self) -> dict[str, Any]:
        return {"name": self._name, "running": self._running, **self._stats}


class WorkerPool:
    """Runs N JobWorker loops as asyncio tasks in one process."""

    def __init__(
        self,
        job_store: IJobStore,
        handlers: dict[JobKind, JobHandler],
        size: int = 1,
        poll_interval: float = 2.0,
        shutdown_timeout: float = 30.0,
    ) -> None:
        self._workers = [
            JobWorker(job_store, handlers, poll_interval, name=f"worker-{i + 1}")
            for i in range(max(1, size))
        ]
        self._tasks: list[asyncio.Task[None]] = []
        self._shutdown_timeout = shutdown_timeout

    @property
    def workers(self) -> list[JobWorker]:
        return list(self._workers)

    def start(self) -> None:
        """Spawn one task per worker. Must be called from a running event loop."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(worker.start(), name=worker.name)
            for worker in self._workers
        ]
        logger.info(f"Worker pool started with {len(self._workers)} worker(s)")

    async def stop(self) -> None:
        """Let every worker finish its current job, cancel whatever exceeds the timeout.

        A cancelled job stays "running" in the table; the stale job sweeper (if enabled)
        eventually fails it.
        """
        for worker in self._workers:
            worker.stop()

        if not self._tasks:
            return

        _, pending = await asyncio.wait(self._tasks, timeout=self._shutdown_timeout)
        for task in pending:
            logger.warning(f"{task.get_name()}: shutdown timeout, cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._tasks = []
        logger.info("Worker pool stopped")

    async def wait(self) -> None:
        """Block until every worker task has exited."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

"""Job Store - the durable job table every process coordinates through.

Hey future me - this replaces any in-memory queue. API processes enqueue and read, worker
processes claim and finish, and the ONLY synchronization between them is the database:

```
Orchestrator → enqueue() ─┐
                          ├─> jobs table <─ claim_next() / finish() ← JobWorker (N per process)
Status poll  → latest_*() ┘
```

CLAIM:
One UPDATE statement picks the oldest queued row of a kind and flips it to running:

    UPDATE jobs SET state='running', started_at=:now
     WHERE id = (SELECT id FROM jobs WHERE kind=:kind AND state='queued'
                  ORDER BY id LIMIT 1 FOR UPDATE SKIP LOCKED)
       AND state='queued'
    RETURNING ...

On PostgreSQL concurrent claimers skip each other's locked rows. SQLite has no row locks and
drops the FOR UPDATE clause, but the whole statement runs under the database write lock, so
two claimers still can never get the same row. Never split this into SELECT-then-UPDATE -
that is exactly the double-claim race.

MISSING TABLE:
A process may start before migrations ran. "no such table" / "relation ... does not exist"
is treated as an empty queue: reads return None, finish() is a no-op. Any OTHER storage error
is raised as StorageUnavailableError.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import Row, insert, select, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from soundkeep.domain.entities import Job, JobKind, JobState
from soundkeep.domain.exceptions import StorageUnavailableError
from soundkeep.domain.ports import IJobStore
from soundkeep.infrastructure.persistence.models import (
    JobModel,
    ensure_utc_aware,
    utc_now,
)

logger = logging.getLogger(__name__)

_JOB_COLUMNS = (
    JobModel.id,
    JobModel.kind,
    JobModel.resource_key,
    JobModel.state,
    JobModel.requested_by,
    JobModel.payload,
    JobModel.result,
    JobModel.error,
    JobModel.requested_at,
    JobModel.started_at,
    JobModel.finished_at,
)


def is_missing_table_error(exc: BaseException) -> bool:
    """Check if a database error means the jobs table was not created yet."""
    if not isinstance(exc, DBAPIError):
        return False
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "no such table" in message or (
        "relation" in message and "does not exist" in message
    )


def _row_to_job(row: Row[Any]) -> Job:
    return Job(
        id=row.id,
        kind=JobKind(row.kind),
        resource_key=row.resource_key,
        state=JobState(row.state),
        requested_by=row.requested_by,
        payload=dict(row.payload or {}),
        result=row.result,
        error=row.error,
        requested_at=ensure_utc_aware(row.requested_at),  # type: ignore[arg-type]
        started_at=ensure_utc_aware(row.started_at),
        finished_at=ensure_utc_aware(row.finished_at),
    )


class JobStore(IJobStore):
    """SQLAlchemy implementation of the job store.

    Every operation opens its own short session and commits before returning, so no
    transaction is ever held across a producer run.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def _storage_error(self, operation: str, exc: SQLAlchemyError) -> StorageUnavailableError:
        logger.error(f"Job store {operation} failed: {exc}")
        return StorageUnavailableError(f"Job store {operation} failed")

    async def enqueue(
        self,
        kind: JobKind,
        resource_key: str,
        requested_by: str | None,
        payload: dict[str, Any] | None = None,
    ) -> Job:
        """Insert a new queued job and return it.

        No deduplication happens here. The orchestrator checks for an active job first; two
        requests racing between that check and this insert can both enqueue, and the worker
        simply produces the same artifact twice.
        """
        stmt = (
            insert(JobModel)
            .values(
                kind=kind.value,
                resource_key=resource_key,
                state=JobState.QUEUED.value,
                requested_by=requested_by,
                payload=payload or {},
                requested_at=utc_now(),
            )
            .returning(*_JOB_COLUMNS)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).one()
                await session.commit()
        except SQLAlchemyError as e:
            # Can't enqueue into a table that doesn't exist, missing or not
            raise self._storage_error("enqueue", e) from e

        job = _row_to_job(row)
        logger.debug(f"Enqueued {kind.value} job {job.id} for {resource_key}")
        return job

    async def claim_next(self, kind: JobKind) -> Job | None:
        """Atomically claim the oldest queued job of a kind.

        Returns:
            The job, now running with started_at set, or None if nothing is queued
        """
        candidate = aliased(JobModel, name="candidate")
        next_id = (
            select(candidate.id)
            .where(
                candidate.kind == kind.value,
                candidate.state == JobState.QUEUED.value,
            )
            .order_by(candidate.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(JobModel)
            .where(
                JobModel.id == next_id,
                JobModel.state == JobState.QUEUED.value,
            )
            .values(state=JobState.RUNNING.value, started_at=utc_now())
            .returning(*_JOB_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
                await session.commit()
        except SQLAlchemyError as e:
            if is_missing_table_error(e):
                logger.debug("jobs table missing, nothing to claim")
                return None
            raise self._storage_error("claim", e) from e

        return _row_to_job(row) if row is not None else None

    async def finish(
        self,
        job_id: int,
        state: JobState,
        result: Any = None,
        error: str | None = None,
    ) -> bool:
        """Move a running job to done or failed and stamp finished_at.

        Only a row that is currently running changes, so done rows stay immutable and a
        job that a sweeper already failed can't be resurrected by a late worker.

        Returns:
            True if the row transitioned, False otherwise (including missing table)
        """
        if not JobState.RUNNING.can_transition_to(state):
            raise ValueError(f"finish() needs a terminal state, got {state.value}")

        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id, JobModel.state == JobState.RUNNING.value)
            .values(
                state=state.value,
                result=result,
                error=error if state == JobState.FAILED else None,
                finished_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                outcome = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            if is_missing_table_error(e):
                logger.debug(f"jobs table missing, finish({job_id}) ignored")
                return False
            raise self._storage_error("finish", e) from e

        if not outcome.rowcount:
            logger.warning(
                f"Job {job_id} was not running, {state.value} transition ignored"
            )
            return False
        return True

    async def _fetch_one(self, operation: str, stmt: Any) -> Job | None:
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
        except SQLAlchemyError as e:
            if is_missing_table_error(e):
                return None
            raise self._storage_error(operation, e) from e
        return _row_to_job(row) if row is not None else None

    async def latest_by_resource_key(
        self, kind: JobKind, resource_key: str
    ) -> Job | None:
        """Most recent job (highest id) for a kind + key, in any state."""
        stmt = (
            select(*_JOB_COLUMNS)
            .where(JobModel.kind == kind.value, JobModel.resource_key == resource_key)
            .order_by(JobModel.id.desc())
            .limit(1)
        )
        return await self._fetch_one("lookup", stmt)

    async def latest_done_by_resource_key(
        self, kind: JobKind, resource_key: str
    ) -> Job | None:
        """Most recent done job for a kind + key."""
        stmt = (
            select(*_JOB_COLUMNS)
            .where(
                JobModel.kind == kind.value,
                JobModel.resource_key == resource_key,
                JobModel.state == JobState.DONE.value,
            )
            .order_by(JobModel.id.desc())
            .limit(1)
        )
        return await self._fetch_one("lookup", stmt)

    async def get(self, job_id: int) -> Job | None:
        stmt = select(*_JOB_COLUMNS).where(JobModel.id == job_id)
        return await self._fetch_one("get", stmt)

    async def fail_stale_running(
        self, kind: JobKind, started_before: datetime, error: str
    ) -> int:
        """Fail running jobs of a kind that started before the cutoff.

        Hey future me - a worker that crashes mid-job leaves its row "running" forever and
        every later request for that key just joins it. This is the escape hatch: fail the
        row, and the next request enqueues a fresh job. We never re-queue the old row.
        """
        stmt = (
            update(JobModel)
            .where(
                JobModel.kind == kind.value,
                JobModel.state == JobState.RUNNING.value,
                JobModel.started_at < started_before,
            )
            .values(state=JobState.FAILED.value, error=error, finished_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                outcome = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            if is_missing_table_error(e):
                return 0
            raise self._storage_error("sweep", e) from e

        count = outcome.rowcount or 0
        if count:
            logger.warning(f"Failed {count} stale running {kind.value} job(s)")
        return count

"""Tests for JobWorker and WorkerPool."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from soundkeep.application.workers.job_worker import JobWorker, WorkerPool, describe_error
from soundkeep.domain.entities import Job, JobKind, JobState
from soundkeep.domain.exceptions import ProducerFailure
from soundkeep.infrastructure.observability.logging import job_id_var
from soundkeep.infrastructure.persistence import JobStore
from soundkeep.infrastructure.persistence.models import utc_now


def _job(job_id: int, kind: JobKind = JobKind.TRANSCODE) -> Job:
    return Job(
        id=job_id,
        kind=kind,
        resource_key="t42_1000_2048.flac" if kind == JobKind.TRANSCODE else "library",
        state=JobState.RUNNING,
        requested_at=utc_now(),
        started_at=utc_now(),
        payload={"track_id": 42} if kind == JobKind.TRANSCODE else {},
    )


def _store(*queued: Job) -> MagicMock:
    """Mock store whose claim_next hands out the given jobs by kind, once each."""
    pending = list(queued)

    async def claim_next(kind: JobKind) -> Job | None:
        for job in pending:
            if job.kind == kind:
                pending.remove(job)
                return job
        return None

    store = MagicMock()
    store.claim_next = AsyncMock(side_effect=claim_next)
    store.finish = AsyncMock(return_value=True)
    return store


class TestDescribeError:
    def test_uses_message(self) -> None:
        assert describe_error(ProducerFailure("disk full")) == "disk full"

    def test_falls_back_to_class_name(self) -> None:
        assert describe_error(TimeoutError()) == "TimeoutError"


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_success_finishes_done_with_result(self) -> None:
        store = _store(_job(1))
        handler = AsyncMock(return_value={"out_dir": "t42_1000_2048.flac"})
        worker = JobWorker(store, {JobKind.TRANSCODE: handler})

        processed = await worker.run_once()

        assert processed is not None
        assert processed.id == 1
        handler.assert_awaited_once_with(processed)
        store.finish.assert_awaited_once_with(
            1, JobState.DONE, result={"out_dir": "t42_1000_2048.flac"}
        )
        assert worker.get_stats()["done"] == 1

    @pytest.mark.asyncio
    async def test_handler_failure_finishes_failed(self) -> None:
        store = _store(_job(2))
        handler = AsyncMock(side_effect=ProducerFailure("disk full"))
        worker = JobWorker(store, {JobKind.TRANSCODE: handler})

        processed = await worker.run_once()

        assert processed is not None
        store.finish.assert_awaited_once_with(2, JobState.FAILED, error="disk full")
        assert worker.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_returns_none_when_idle(self) -> None:
        store = _store()
        worker = JobWorker(store, {JobKind.TRANSCODE: AsyncMock()})

        assert await worker.run_once() is None
        store.finish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transcodes_are_claimed_before_scans(self) -> None:
        store = _store(_job(1, JobKind.SCAN), _job(2, JobKind.TRANSCODE))
        handlers = {JobKind.SCAN: AsyncMock(), JobKind.TRANSCODE: AsyncMock()}
        worker = JobWorker(store, handlers)

        first = await worker.run_once()
        second = await worker.run_once()

        assert first is not None and first.kind == JobKind.TRANSCODE
        assert second is not None and second.kind == JobKind.SCAN

    @pytest.mark.asyncio
    async def test_only_claims_kinds_with_handlers(self) -> None:
        store = _store(_job(1, JobKind.SCAN))
        worker = JobWorker(store, {JobKind.TRANSCODE: AsyncMock()})

        assert await worker.run_once() is None
        claimed_kinds = [call.args[0] for call in store.claim_next.await_args_list]
        assert claimed_kinds == [JobKind.TRANSCODE]

    @pytest.mark.asyncio
    async def test_job_id_is_bound_while_handling(self) -> None:
        seen: list[Any] = []

        async def handler(job: Job) -> None:
            seen.append(job_id_var.get())

        worker = JobWorker(_store(_job(9)), {JobKind.TRANSCODE: handler})
        await worker.run_once()

        assert seen == [9]
        assert job_id_var.get() is None


class TestWorkerLoop:
    @pytest.mark.asyncio
    async def test_start_processes_until_stopped(self) -> None:
        store = _store(_job(1), _job(2))
        done = asyncio.Event()
        handled: list[int] = []

        async def handler(job: Job) -> None:
            handled.append(job.id)
            if len(handled) == 2:
                done.set()

        worker = JobWorker(store, {JobKind.TRANSCODE: handler}, poll_interval=0.01)
        task = asyncio.create_task(worker.start())
        await asyncio.wait_for(done.wait(), timeout=5)
        worker.stop()
        await asyncio.wait_for(task, timeout=5)

        assert handled == [1, 2]
        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_storage_errors_do_not_kill_the_loop(self) -> None:
        store = MagicMock()
        calls = 0

        async def claim_next(kind: JobKind) -> Job | None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database is gone")
            return None

        store.claim_next = AsyncMock(side_effect=claim_next)
        worker = JobWorker(store, {JobKind.TRANSCODE: AsyncMock()}, poll_interval=0.01)

        task = asyncio.create_task(worker.start())
        while calls < 3:
            await asyncio.sleep(0.01)
        worker.stop()
        await asyncio.wait_for(task, timeout=5)

        assert calls >= 3


class TestWorkerPoolWithDatabase:
    @pytest.mark.asyncio
    async def test_pool_drains_queue_exactly_once(self, job_store: JobStore) -> None:
        jobs = [await job_store.enqueue(JobKind.TRANSCODE, f"k{i}", None) for i in range(6)]
        handled: list[int] = []

        async def handler(job: Job) -> dict[str, str]:
            handled.append(job.id)
            await asyncio.sleep(0)
            return {"out_dir": job.resource_key}

        pool = WorkerPool(job_store, {JobKind.TRANSCODE: handler}, size=3, poll_interval=0.01)
        pool.start()
        for _ in range(500):
            if len(handled) == len(jobs):
                break
            await asyncio.sleep(0.01)
        await pool.stop()

        assert sorted(handled) == sorted(job.id for job in jobs)
        for job in jobs:
            finished = await job_store.get(job.id)
            assert finished is not None
            assert finished.state == JobState.DONE
            assert finished.result == {"out_dir": job.resource_key}

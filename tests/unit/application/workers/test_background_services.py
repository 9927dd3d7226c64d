"""Tests for the scan handler, rescan scheduler and stale job sweeper."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.application.workers.library_scan_worker import LibraryScanJobHandler
from soundkeep.application.workers.rescan_scheduler import RescanScheduler
from soundkeep.application.workers.stale_job_sweeper import StaleJobSweeper
from soundkeep.domain.entities import Job, JobKind, JobState
from soundkeep.infrastructure.persistence import JobStore
from soundkeep.infrastructure.persistence.models import utc_now


class TestLibraryScanJobHandler:
    @pytest.mark.asyncio
    async def test_passes_job_id_and_force(self) -> None:
        scanner = MagicMock()
        scanner.scan = AsyncMock(return_value={"scanned_files": 3})
        job = Job(
            id=5,
            kind=JobKind.SCAN,
            resource_key="library",
            state=JobState.RUNNING,
            requested_at=utc_now(),
            payload={"force": True},
        )

        result = await LibraryScanJobHandler(scanner).handle(job)

        assert result == {"scanned_files": 3}
        scanner.scan.assert_awaited_once_with(5, force=True)


class TestRescanScheduler:
    @pytest.mark.asyncio
    async def test_tick_enqueues_then_joins(self, job_store: JobStore) -> None:
        scheduler = RescanScheduler(ScanRequestService(job_store), interval_seconds=3600)

        await scheduler.tick()
        await scheduler.tick()

        latest = await job_store.latest_by_resource_key(JobKind.SCAN, "library")
        assert latest is not None
        assert latest.requested_by is None
        # Second tick joined the queued scan instead of adding another
        assert await job_store.get(latest.id + 1) is None

    @pytest.mark.asyncio
    async def test_stop_ends_loop(self) -> None:
        scan_requests = MagicMock()
        scan_requests.request_scan = AsyncMock()
        scheduler = RescanScheduler(scan_requests, interval_seconds=3600)

        task = asyncio.create_task(scheduler.start())
        await asyncio.sleep(0)
        scheduler.stop()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        scan_requests.request_scan.assert_not_awaited()


class TestStaleJobSweeper:
    @pytest.mark.asyncio
    async def test_sweeps_every_kind(self) -> None:
        store = MagicMock()
        store.fail_stale_running = AsyncMock(return_value=1)
        sweeper = StaleJobSweeper(store, timeout_seconds=600)

        assert await sweeper.sweep() == len(JobKind)

        kinds = {call.args[0] for call in store.fail_stale_running.await_args_list}
        assert kinds == set(JobKind)
        _, cutoff, error = store.fail_stale_running.await_args.args
        assert utc_now() - cutoff >= timedelta(seconds=599)
        assert error == "stale: still running after 600s"

    @pytest.mark.asyncio
    async def test_stale_job_can_be_requested_again(self, job_store: JobStore) -> None:
        job = await job_store.enqueue(JobKind.TRANSCODE, "t1_1_1.mp3", "alice")
        await job_store.claim_next(JobKind.TRANSCODE)

        # A negative timeout puts the cutoff in the future, so the fresh job counts as stale
        assert await StaleJobSweeper(job_store, timeout_seconds=-60).sweep() == 1

        swept = await job_store.get(job.id)
        assert swept is not None
        assert swept.state == JobState.FAILED
        assert swept.error is not None and swept.error.startswith("stale")

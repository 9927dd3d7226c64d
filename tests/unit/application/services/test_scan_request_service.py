"""Tests for ScanRequestService."""

import pytest

from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.domain.entities import SCAN_RESOURCE_KEY, JobKind, JobState, Principal
from soundkeep.domain.exceptions import AuthorizationError, EntityNotFoundException
from soundkeep.infrastructure.persistence import JobStore

ADMIN = Principal(user_id="root", role="admin")


@pytest.fixture
def service(job_store: JobStore) -> ScanRequestService:
    return ScanRequestService(job_store)


class TestRequestScan:
    @pytest.mark.asyncio
    async def test_admin_enqueues_scan(self, service: ScanRequestService) -> None:
        job, created = await service.request_scan(ADMIN, force=True)

        assert created is True
        assert job.kind == JobKind.SCAN
        assert job.resource_key == SCAN_RESOURCE_KEY
        assert job.payload == {"force": True}
        assert job.requested_by == "root"

    @pytest.mark.asyncio
    async def test_non_admin_is_rejected(
        self, service: ScanRequestService, job_store: JobStore
    ) -> None:
        with pytest.raises(AuthorizationError):
            await service.request_scan(Principal(user_id="alice"))

        assert await service.latest_status() is None

    @pytest.mark.asyncio
    async def test_joins_active_scan(
        self, service: ScanRequestService, job_store: JobStore
    ) -> None:
        first, _ = await service.request_scan(ADMIN)
        await job_store.claim_next(JobKind.SCAN)

        joined, created = await service.request_scan(ADMIN)

        assert created is False
        assert joined.id == first.id
        assert joined.state == JobState.RUNNING

    @pytest.mark.asyncio
    async def test_done_scan_does_not_short_circuit(
        self, service: ScanRequestService, job_store: JobStore
    ) -> None:
        first, _ = await service.request_scan(ADMIN)
        await job_store.claim_next(JobKind.SCAN)
        await job_store.finish(first.id, JobState.DONE, result={"scanned_files": 0})

        second, created = await service.request_scan(ADMIN)

        assert created is True
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_system_trigger_without_principal(
        self, service: ScanRequestService
    ) -> None:
        job, created = await service.request_scan(None)

        assert created is True
        assert job.requested_by is None


class TestScanLookups:
    @pytest.mark.asyncio
    async def test_latest_status(self, service: ScanRequestService) -> None:
        assert await service.latest_status() is None

        job, _ = await service.request_scan(ADMIN)

        latest = await service.latest_status()
        assert latest is not None
        assert latest.id == job.id

    @pytest.mark.asyncio
    async def test_get_job(self, service: ScanRequestService) -> None:
        job, _ = await service.request_scan(ADMIN)

        fetched = await service.get_job(job.id)

        assert fetched.id == job.id

    @pytest.mark.asyncio
    async def test_get_job_rejects_other_kinds(
        self, service: ScanRequestService, job_store: JobStore
    ) -> None:
        transcode = await job_store.enqueue(JobKind.TRANSCODE, "t1_1_1.mp3", "alice")

        with pytest.raises(EntityNotFoundException):
            await service.get_job(transcode.id)

        with pytest.raises(EntityNotFoundException):
            await service.get_job(9999)

"""Library scan endpoints.

Hey future me - scans follow the same join-or-enqueue protocol as HLS requests, keyed by
the single "library" resource key. POSTing while a scan is queued or running returns that
scan (created=false) instead of stacking a second one. Admin only.
"""

import logging

from fastapi import APIRouter, Depends, Query

from soundkeep.api.dependencies import get_principal, get_scan_request_service
from soundkeep.api.schemas.scan import ScanJobResponse, ScanRequestResponse
from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.domain.entities import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/library/scan", tags=["Library Scan"])


@router.post("", response_model=ScanRequestResponse)
async def start_library_scan(
    force: bool = Query(default=False, description="Re-read tags of unchanged files too"),
    principal: Principal = Depends(get_principal),
    service: ScanRequestService = Depends(get_scan_request_service),
) -> ScanRequestResponse:
    """Request a scan of every configured music path."""
    job, created = await service.request_scan(principal, force=force)
    return ScanRequestResponse.from_request(job, created)


# Must be registered before /{job_id}, otherwise "status" is parsed as an id
@router.get("/status", response_model=ScanJobResponse)
async def latest_scan_status(
    principal: Principal = Depends(get_principal),
    service: ScanRequestService = Depends(get_scan_request_service),
) -> ScanJobResponse:
    """Most recent scan job, or state="missing" if none was ever requested."""
    return ScanJobResponse.from_job(await service.latest_status())


@router.get("/{job_id}", response_model=ScanJobResponse)
async def get_scan_job(
    job_id: int,
    principal: Principal = Depends(get_principal),
    service: ScanRequestService = Depends(get_scan_request_service),
) -> ScanJobResponse:
    """One scan job by id."""
    return ScanJobResponse.from_job(await service.get_job(job_id))

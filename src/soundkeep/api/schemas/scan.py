"""API schemas for library scans."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from soundkeep.domain.entities import Job


class ScanJobResponse(BaseModel):
    """One scan job. ``state`` is "missing" when no scan was ever requested."""

    state: str
    job_id: int | None = None
    requested_by: str | None = None
    requested_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    force: bool = False
    result: dict[str, Any] | None = Field(
        default=None, description="Scan statistics once the job is done"
    )
    error: str | None = None

    @classmethod
    def from_job(cls, job: Job | None) -> "ScanJobResponse":
        if job is None:
            return cls(state="missing")
        return cls(
            state=job.state.value,
            job_id=job.id,
            requested_by=job.requested_by,
            requested_at=job.requested_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
            force=bool(job.payload.get("force", False)),
            result=job.result if isinstance(job.result, dict) else None,
            error=job.error,
        )


class ScanRequestResponse(ScanJobResponse):
    """Answer to POST /library/scan."""

    created: bool = Field(
        default=False, description="False when an already active scan was joined"
    )

    @classmethod
    def from_request(cls, job: Job, created: bool) -> "ScanRequestResponse":
        return cls(**ScanJobResponse.from_job(job).model_dump(), created=created)

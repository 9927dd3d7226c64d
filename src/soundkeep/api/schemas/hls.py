"""API schemas for HLS artifact requests."""

from pydantic import BaseModel, Field

from soundkeep.domain.entities import ArtifactRequestResult, ArtifactStatus


class HlsRequestResponse(BaseModel):
    """Answer to POST /hls/{track_id}/request."""

    state: str = Field(..., description="ready or pending")
    job_id: int = Field(..., description="Job that produced (or will produce) the artifact")
    job_state: str = Field(..., description="State of that job")
    ready: bool
    manifest_url: str | None = Field(
        default=None, description="Playlist URL, only set when ready"
    )

    @classmethod
    def from_result(
        cls, result: ArtifactRequestResult, manifest_url: str
    ) -> "HlsRequestResponse":
        return cls(
            state=result.state.value,
            job_id=result.job.id,
            job_state=result.job.state.value,
            ready=result.ready,
            manifest_url=manifest_url if result.ready else None,
        )


class HlsStatusResponse(BaseModel):
    """Answer to GET /hls/{track_id}/status."""

    state: str = Field(..., description="queued, running, done, failed or missing")
    job_id: int | None = None
    ready: bool
    error: str | None = None
    manifest_url: str | None = None

    @classmethod
    def from_status(cls, status: ArtifactStatus, manifest_url: str) -> "HlsStatusResponse":
        return cls(
            state=status.state,
            job_id=status.job.id if status.job else None,
            ready=status.ready,
            error=status.error,
            manifest_url=manifest_url if status.ready else None,
        )

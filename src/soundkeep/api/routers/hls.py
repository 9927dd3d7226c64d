"""HLS artifact endpoints: request, poll, and stream transcoded tracks.

Hey future me - the player flow is:
1. POST /hls/{track_id}/request → "ready" (go to 3) or "pending"
2. GET  /hls/{track_id}/status  every few seconds until ready (or failed)
3. GET  /hls/{track_id}/playlist → manifest with segment lines pointing at /seg/...
4. GET  /hls/{track_id}/seg/seg_00000.ts ... streamed by FileResponse

Nothing here transcodes. A "pending" answer just means a job row exists; some worker
process picks it up.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse

from soundkeep.api.dependencies import (
    get_artifact_service,
    get_manifest_rewriter,
    get_principal,
    get_transcode_request_service,
)
from soundkeep.api.schemas.hls import HlsRequestResponse, HlsStatusResponse
from soundkeep.application.services.artifact_service import ArtifactService
from soundkeep.application.services.manifest_rewriter import ManifestRewriter
from soundkeep.application.services.transcode_request_service import (
    TranscodeRequestService,
)
from soundkeep.domain.entities import Principal
from soundkeep.domain.value_objects import MANIFEST_NAME, content_type_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hls", tags=["HLS"])

_MANIFEST_CONTENT_TYPE = content_type_for(MANIFEST_NAME)


@router.post("/{track_id}/request", response_model=HlsRequestResponse)
async def request_hls(
    track_id: int,
    principal: Principal = Depends(get_principal),
    service: TranscodeRequestService = Depends(get_transcode_request_service),
    rewriter: ManifestRewriter = Depends(get_manifest_rewriter),
) -> HlsRequestResponse:
    """Idempotently request the HLS artifact of a track.

    Repeating the call while a job is queued or running returns that same job.
    """
    result = await service.request(principal, track_id)
    return HlsRequestResponse.from_result(result, rewriter.playlist_url(track_id))


@router.get("/{track_id}/status", response_model=HlsStatusResponse)
async def hls_status(
    track_id: int,
    principal: Principal = Depends(get_principal),
    service: TranscodeRequestService = Depends(get_transcode_request_service),
    rewriter: ManifestRewriter = Depends(get_manifest_rewriter),
) -> HlsStatusResponse:
    """Report the latest job for the track's current version. Never enqueues."""
    status = await service.status(principal, track_id)
    return HlsStatusResponse.from_status(status, rewriter.playlist_url(track_id))


# The rewritten text depends on the request (token), so it must never be cached
@router.get("/{track_id}/playlist")
async def hls_playlist(
    track_id: int,
    token: str | None = Query(default=None, description="Token appended to segment URLs"),
    principal: Principal = Depends(get_principal),
    artifacts: ArtifactService = Depends(get_artifact_service),
    rewriter: ManifestRewriter = Depends(get_manifest_rewriter),
) -> Response:
    """Serve the manifest with segment lines rewritten to fetchable URLs."""
    manifest = await artifacts.read_manifest(principal, track_id)
    return Response(
        content=rewriter.rewrite(manifest, track_id, access_token=token),
        media_type=_MANIFEST_CONTENT_TYPE,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/{track_id}/seg/{segment}")
async def hls_segment(
    track_id: int,
    segment: str,
    principal: Principal = Depends(get_principal),
    artifacts: ArtifactService = Depends(get_artifact_service),
) -> FileResponse:
    """Stream one segment of the track's current artifact."""
    artifact = await artifacts.open_track_file(principal, track_id, segment)
    return FileResponse(artifact.path, media_type=artifact.content_type)


@router.get("/{track_id}/{file_name:path}")
async def hls_file(
    track_id: int,
    file_name: str,
    principal: Principal = Depends(get_principal),
    artifacts: ArtifactService = Depends(get_artifact_service),
) -> FileResponse:
    """Stream any file of the track's current artifact (raw manifest included)."""
    artifact = await artifacts.open_track_file(principal, track_id, file_name)
    return FileResponse(artifact.path, media_type=artifact.content_type)

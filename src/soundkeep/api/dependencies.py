"""Dependency injection for API endpoints."""

import logging
from collections.abc import AsyncGenerator
from typing import cast

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from soundkeep.application.services.artifact_service import ArtifactService
from soundkeep.application.services.manifest_rewriter import ManifestRewriter
from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.application.services.transcode_request_service import (
    TranscodeRequestService,
)
from soundkeep.config import Settings, get_settings
from soundkeep.domain.entities import Principal
from soundkeep.domain.exceptions import AuthenticationError
from soundkeep.domain.ports import IJobStore, ITrackCatalog
from soundkeep.infrastructure.persistence.database import Database
from soundkeep.infrastructure.persistence.job_store import JobStore
from soundkeep.infrastructure.persistence.repositories import TrackRepository

logger = logging.getLogger(__name__)


# Hey future me, settings come from app.state when the app was built with explicit settings
# (tests do that with a tmp database), otherwise from the cached env-based get_settings().
def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()


def get_database(request: Request) -> Database:
    """Database from app state; 503 until the lifespan has created it."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return cast(Database, db)


# Hey future me - this is a FastAPI dependency that yields a DB session to endpoints.
# We use the session_scope() context manager instead of an async generator on the Database
# because the context manager handles commit/rollback AND connection cleanup properly.
# Use this in endpoint params like: "session: AsyncSession = Depends(get_db_session)"
async def get_db_session(
    db: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for the duration of one request."""
    async with db.session_scope() as session:
        yield session


# The job store opens its own short session per operation, it never shares the request
# session. A claim or enqueue must commit on its own, not at the end of the request.
def get_job_store(db: Database = Depends(get_database)) -> IJobStore:
    return JobStore(db.session_factory)


def get_track_catalog(session: AsyncSession = Depends(get_db_session)) -> ITrackCatalog:
    return TrackRepository(session)


def get_transcode_request_service(
    job_store: IJobStore = Depends(get_job_store),
    track_catalog: ITrackCatalog = Depends(get_track_catalog),
) -> TranscodeRequestService:
    return TranscodeRequestService(job_store, track_catalog)


def get_scan_request_service(
    job_store: IJobStore = Depends(get_job_store),
) -> ScanRequestService:
    return ScanRequestService(job_store)


def get_artifact_service(
    job_store: IJobStore = Depends(get_job_store),
    settings: Settings = Depends(get_app_settings),
    transcode_requests: TranscodeRequestService = Depends(get_transcode_request_service),
) -> ArtifactService:
    return ArtifactService(job_store, settings.storage.hls_cache_path, transcode_requests)


def get_manifest_rewriter(
    settings: Settings = Depends(get_app_settings),
) -> ManifestRewriter:
    return ManifestRewriter(settings.api.hls_public_prefix)


def _parse_library_ids(raw: str) -> frozenset[int]:
    try:
        return frozenset(int(part) for part in raw.split(",") if part.strip())
    except ValueError as e:
        raise AuthenticationError(f"Malformed X-Allowed-Libraries header: {raw!r}") from e


# Listen up, authentication happens UPSTREAM. The gateway in front of us verifies the user
# and forwards who they are in these headers; we only translate them into a Principal.
# Absent X-Allowed-Libraries means "every library", an EMPTY value means "none".
async def get_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_allowed_libraries: str | None = Header(default=None),
) -> Principal:
    """Build the caller's Principal from gateway headers.

    Raises:
        AuthenticationError: No X-User-Id header (or a malformed library list)
    """
    if not x_user_id:
        raise AuthenticationError("Missing X-User-Id header")

    allowed = (
        _parse_library_ids(x_allowed_libraries) if x_allowed_libraries is not None else None
    )
    return Principal(
        user_id=x_user_id,
        role=(x_user_role or "user").lower(),
        allowed_library_ids=allowed,
    )

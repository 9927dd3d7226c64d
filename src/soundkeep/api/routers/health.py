# Hey future me - this router is for Docker/Kubernetes health checks!
#
# - /health       → liveness + database ping (503 when the DB is unreachable)
# - /health/live  → process is up, no dependency checks
#
# Docker HEALTHCHECK: curl -f http://localhost:8000/api/health/live || exit 1
"""Health check endpoints for Docker/Kubernetes probes."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

router = APIRouter()


class LivenessStatus(BaseModel):
    """Simple liveness probe response."""

    status: str = Field(description="alive")
    timestamp: str = Field(description="ISO timestamp")


class HealthStatus(BaseModel):
    """Overall health status response."""

    status: str = Field(description="healthy or unhealthy")
    timestamp: str = Field(description="ISO timestamp of health check")
    database: bool = Field(description="Database connection OK")
    workers: dict[str, Any] | None = Field(
        default=None, description="Embedded worker stats, when workers run in this process"
    )


@router.get("/live", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    """Returns 200 as long as the process serves requests."""
    return LivenessStatus(status="alive", timestamp=datetime.now(UTC).isoformat())


@router.get("", response_model=HealthStatus)
async def health_check(request: Request) -> JSONResponse:
    """Liveness plus a database ping."""
    db = getattr(request.app.state, "db", None)
    db_ok = db is not None and await db.ping()

    workers = None
    runtime = getattr(request.app.state, "worker_runtime", None)
    if runtime is not None:
        workers = {w.name: w.get_stats() for w in runtime.pool.workers}

    response = HealthStatus(
        status="healthy" if db_ok else "unhealthy",
        timestamp=datetime.now(UTC).isoformat(),
        database=db_ok,
        workers=workers,
    )
    status_code = status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=status_code)

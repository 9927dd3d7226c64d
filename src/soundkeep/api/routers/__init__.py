"""API router initialization."""

# Hey future me, this is the MAIN API router aggregator! It gets mounted at /api in main.py.
# Each sub-router defines its own prefix (hls.py → /hls, library_scan.py → /library/scan),
# only health gets its prefix here.

from fastapi import APIRouter

from soundkeep.api.routers import health, hls, library_scan

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(hls.router)
api_router.include_router(library_scan.router)

__all__ = [
    "api_router",
    "health",
    "hls",
    "library_scan",
]

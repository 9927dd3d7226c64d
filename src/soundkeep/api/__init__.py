"""API module for soundkeep.

Hey future me - the main entry point is `api_router` from routers/, which aggregates all
sub-routers and is mounted under /api in main.py.

Structure:
- routers/: HTTP endpoints (hls, library scan, health)
- schemas/: Pydantic response models
- dependencies.py: Dependency injection (principal, job store, services)
- exception_handlers.py: Domain exception → HTTP status mapping
"""

from soundkeep.api.routers import api_router

__all__ = ["api_router"]

"""FastAPI application entry point.

Run with: uvicorn soundkeep.main:app
"""

from fastapi import FastAPI

from soundkeep import __version__
from soundkeep.api.exception_handlers import register_exception_handlers
from soundkeep.api.routers import api_router
from soundkeep.config import Settings
from soundkeep.infrastructure.lifecycle import lifespan
from soundkeep.infrastructure.observability import RequestLoggingMiddleware


# Hey future me, pass explicit settings in tests (tmp database, tmp cache dir). The lifespan
# and the dependencies read them from app.state before falling back to the env.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="soundkeep",
        version=__version__,
        description="Library scans and on-demand HLS transcodes for a self-hosted music library",
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

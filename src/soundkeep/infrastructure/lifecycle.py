"""Application lifecycle management for startup and shutdown tasks.

Two process types share this wiring:
- API process: FastAPI lifespan below (optionally also runs the workers, "embedded" mode)
- Worker process: soundkeep.worker_main builds the same WorkerRuntime without HTTP
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from soundkeep.application.services.library_scanner_service import LibraryScannerService
from soundkeep.application.services.scan_request_service import ScanRequestService
from soundkeep.application.workers.job_worker import JobHandler, WorkerPool
from soundkeep.application.workers.library_scan_worker import LibraryScanJobHandler
from soundkeep.application.workers.rescan_scheduler import RescanScheduler
from soundkeep.application.workers.stale_job_sweeper import StaleJobSweeper
from soundkeep.application.workers.transcode_worker import TranscodeJobHandler
from soundkeep.config import Settings, get_settings
from soundkeep.domain.entities import JobKind
from soundkeep.domain.exceptions import ConfigurationError
from soundkeep.infrastructure.observability import configure_logging
from soundkeep.infrastructure.persistence import Database, JobStore
from soundkeep.infrastructure.transcoding import FfmpegHlsTranscoder

logger = logging.getLogger(__name__)


# Hey future me, this validates SQLite paths BEFORE we create the engine. SQLite also needs
# to create -journal/-wal files next to the .db, so we check the directory is writable.
# Returns early for PostgreSQL. A clear ConfigurationError at startup beats a cryptic
# "unable to open database file" on the first request.
def validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}"
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}"
        ) from exc


class WorkerRuntime:
    """The worker pool plus the optional scheduler and sweeper, built from settings."""

    def __init__(self, settings: Settings, db: Database) -> None:
        job_store = JobStore(db.session_factory)
        scanner = LibraryScannerService(db.session_factory, settings.storage.music_paths)
        transcodes = TranscodeJobHandler(
            db.session_factory,
            FfmpegHlsTranscoder(settings.transcode),
            settings.storage.hls_cache_path,
        )
        handlers: dict[JobKind, JobHandler] = {
            JobKind.TRANSCODE: transcodes.handle,
            JobKind.SCAN: LibraryScanJobHandler(scanner).handle,
        }

        self.pool = WorkerPool(
            job_store,
            handlers,
            size=settings.worker.num_workers,
            poll_interval=settings.worker.poll_interval_seconds,
        )
        self.scheduler = (
            RescanScheduler(ScanRequestService(job_store), settings.worker.rescan_interval_seconds)
            if settings.worker.rescan_interval_seconds
            else None
        )
        self.sweeper = (
            StaleJobSweeper(job_store, settings.worker.stale_job_timeout_seconds)
            if settings.worker.stale_job_timeout_seconds
            else None
        )
        self._service_tasks: list[asyncio.Task[None]] = []

    def start(self) -> None:
        self.pool.start()
        for service in (self.scheduler, self.sweeper):
            if service is not None:
                self._service_tasks.append(asyncio.create_task(service.start()))

    async def stop(self) -> None:
        for service in (self.scheduler, self.sweeper):
            if service is not None:
                service.stop()
        # Both only sleep between ticks, cancelling them loses nothing
        for task in self._service_tasks:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._service_tasks = []
        await self.pool.stop()

    async def wait(self) -> None:
        await self.pool.wait()


async def init_database(settings: Settings) -> Database:
    """Create the Database and (optionally) the schema."""
    validate_sqlite_path(settings)
    db = Database(settings)
    if settings.database.auto_create_schema:
        await db.create_tables()
        logger.info("Database schema ensured")
    return db


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# The finally block ALWAYS runs, so a half-finished startup still closes the DB.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    runtime: WorkerRuntime | None = None
    try:
        settings.ensure_directories()
        db = await init_database(settings)
        app.state.db = db
        app.state.settings = settings
        logger.info("Database initialized: %s", settings.database.url)

        if settings.worker.embedded:
            runtime = WorkerRuntime(settings, db)
            runtime.start()
            app.state.worker_runtime = runtime
            logger.info("Embedded worker pool started")

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if runtime is not None:
            try:
                await runtime.stop()
            except Exception as e:
                logger.exception("Error stopping embedded workers: %s", e)

        try:
            if hasattr(app.state, "db"):
                await app.state.db.close()
                logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)

"""Standalone worker process.

Run with: soundkeep-worker (console script) or python -m soundkeep.worker_main

Hey future me - this is the same WorkerRuntime the API builds in embedded mode, minus HTTP.
Run as many of these as you like against one database; claims never overlap. SIGTERM and
SIGINT let every worker finish its current job before the process exits.
"""

import asyncio
import logging
import signal
import sys

from soundkeep.config import Settings, get_settings
from soundkeep.infrastructure.lifecycle import WorkerRuntime, init_database
from soundkeep.infrastructure.observability import configure_logging

logger = logging.getLogger(__name__)


async def run_worker(settings: Settings) -> None:
    """Run the worker pool until a termination signal arrives."""
    settings.ensure_directories()
    db = await init_database(settings)
    runtime = WorkerRuntime(settings, db)

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops: fall back to KeyboardInterrupt
            pass

    try:
        runtime.start()
        logger.info(
            "Worker process started",
            extra={"num_workers": settings.worker.num_workers},
        )
        await stop_requested.wait()
        logger.info("Termination signal received, finishing current jobs")
    finally:
        await runtime.stop()
        await db.close()
        logger.info("Worker process stopped")


def main() -> None:
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=f"{settings.app_name}-worker",
    )
    try:
        asyncio.run(run_worker(settings))
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Worker process crashed")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Worker system - background job processing."""

from soundkeep.application.workers.job_worker import (
    DEFAULT_KIND_PRIORITY,
    JobHandler,
    JobWorker,
    WorkerPool,
    describe_error,
)
from soundkeep.application.workers.library_scan_worker import LibraryScanJobHandler
from soundkeep.application.workers.rescan_scheduler import RescanScheduler
from soundkeep.application.workers.stale_job_sweeper import StaleJobSweeper
from soundkeep.application.workers.transcode_worker import (
    TranscodeJobHandler,
    safe_join_mount,
)

__all__ = [
    "DEFAULT_KIND_PRIORITY",
    "JobHandler",
    "JobWorker",
    "LibraryScanJobHandler",
    "RescanScheduler",
    "StaleJobSweeper",
    "TranscodeJobHandler",
    "WorkerPool",
    "describe_error",
    "safe_join_mount",
]

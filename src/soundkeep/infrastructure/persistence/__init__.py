"""Infrastructure persistence layer."""

from .database import Database
from .job_store import JobStore, is_missing_table_error
from .models import Base, JobModel, LibraryModel, TrackModel
from .repositories import LibraryRepository, TrackRepository
from .retry import is_lock_error, with_db_retry

__all__ = [
    # Database
    "Database",
    "Base",
    # Models
    "JobModel",
    "LibraryModel",
    "TrackModel",
    # Job store
    "JobStore",
    "is_missing_table_error",
    # Repositories
    "LibraryRepository",
    "TrackRepository",
    # Retry utilities
    "with_db_retry",
    "is_lock_error",
]

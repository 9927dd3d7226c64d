"""Observability infrastructure for structured logging."""

from soundkeep.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    reset_job_id,
    set_correlation_id,
    set_job_id,
)
from soundkeep.infrastructure.observability.middleware import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "get_correlation_id",
    "reset_job_id",
    "set_correlation_id",
    "set_job_id",
]

"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./soundkeep.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    # SQLite only. API and worker processes share one file, so readers must not block the
    # single writer (WAL) and writers wait for the lock instead of failing at once.
    sqlite_wal: bool = True
    sqlite_busy_timeout_seconds: int = 30
    # Hey future me - turn this OFF when migrations run as a separate step (alembic upgrade head).
    # The job store tolerates a missing jobs table anyway, so a worker that boots before the
    # migration finished just sees an empty queue.
    auto_create_schema: bool = True


class StorageSettings(BaseModel):
    """Filesystem locations."""

    # JSON list in the env: SOUNDKEEP_STORAGE__MUSIC_PATHS='["/music", "/more"]'
    music_paths: list[Path] = Field(default_factory=lambda: [Path("/music")])
    hls_cache_path: Path = Path("/hls")

    @field_validator("hls_cache_path")
    @classmethod
    def _absolute_cache_path(cls, value: Path) -> Path:
        # Containment checks compare resolved paths, so keep the root resolved too
        return value.expanduser().resolve()


class TranscodeSettings(BaseModel):
    """External transcoder invocation settings."""

    ffmpeg_path: str = "ffmpeg"
    audio_bitrate: str = "192k"
    segment_seconds: int = 6


class WorkerSettings(BaseModel):
    """Background worker settings."""

    poll_interval_seconds: float = 2.0
    num_workers: int = 1
    # Run the worker pool inside the API process (single-container deployments)
    embedded: bool = False
    # Periodic library rescan; None disables the scheduler
    rescan_interval_seconds: int | None = None
    # Fail jobs stuck in "running" longer than this; None disables the sweeper
    stale_job_timeout_seconds: int | None = None


class ApiSettings(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    # Prefix used when rewriting manifest segment lines into client-fetchable paths
    hls_public_prefix: str = "/api/hls"


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object.

    Nested sections map to env vars with a double underscore, e.g.
    ``SOUNDKEEP_DATABASE__URL`` or ``SOUNDKEEP_WORKER__NUM_WORKERS``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOUNDKEEP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "soundkeep"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    transcode: TranscodeSettings = Field(default_factory=TranscodeSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def ensure_directories(self) -> None:
        """Create directories the application writes to."""
        self.storage.hls_cache_path.mkdir(parents=True, exist_ok=True)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite database file path, or None for other backends."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

"""soundkeep - background job queue and HLS artifact cache for a self-hosted music library."""

__version__ = "0.1.0"

"""Configuration module for SoundKeep."""

from .settings import (
    ApiSettings,
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    StorageSettings,
    TranscodeSettings,
    WorkerSettings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "Settings",
    "StorageSettings",
    "TranscodeSettings",
    "WorkerSettings",
    "get_settings",
]

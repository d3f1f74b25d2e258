"""Exporter configuration."""
from .settings import (
    ArchiveSettings,
    GitConfig,
    ManagerConfig,
    DEFAULT_OUTPUT_DIR,
    load_settings,
)

__all__ = ["ArchiveSettings", "GitConfig", "ManagerConfig", "DEFAULT_OUTPUT_DIR", "load_settings"]

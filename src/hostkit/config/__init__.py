"""Config module exports."""

from hostkit.config.loader import HostKitSettings, load_config
from hostkit.config.models import (
    BundlerConfig,
    DatabaseConfig,
    HostKitConfig,
    LoggingConfig,
    NamespaceConfig,
    StorageConfig,
    WatcherConfig,
)

__all__ = [
    "load_config",
    "BundlerConfig",
    "DatabaseConfig",
    "HostKitConfig",
    "HostKitSettings",
    "LoggingConfig",
    "NamespaceConfig",
    "StorageConfig",
    "WatcherConfig",
]

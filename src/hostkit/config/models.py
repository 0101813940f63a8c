"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (HOSTKIT__SECTION__KEY)
3. Global YAML (~/.config/hostkit/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    HOSTKIT__<SECTION>__<KEY>=<VALUE>

Examples:
    HOSTKIT__LOGGING__LEVEL=DEBUG
    HOSTKIT__STORAGE__DATA_DIR=/tmp/hostkit
    HOSTKIT__BUNDLER__ENABLED=false
    HOSTKIT__NAMESPACE__ROOT_NAME=hk
"""

import os
import sys
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def default_data_dir() -> Path:
    """Per-platform application data directory."""
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "HostKit"
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(app_data) / "HostKit"
    xdg_data = os.environ.get("XDG_DATA_HOME") or str(home / ".local" / "share")
    return Path(xdg_data) / "hostkit"


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        HOSTKIT__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG is verbose.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class StorageConfig(BaseModel):
    """Where persisted modules, aliases and user properties live.

    Env vars:
        HOSTKIT__STORAGE__DATA_DIR: Data directory (default: platform data dir)
        HOSTKIT__STORAGE__DB_NAME: SQLite file name inside the data directory
        HOSTKIT__STORAGE__MODULES_DIR: Module storage root, relative to the data directory
    """

    data_dir: Path = Field(
        default_factory=default_data_dir,
        description="Data directory holding the database and module files.",
    )
    db_name: str = Field(default="hostkit.sqlite", description="SQLite database file name.")
    modules_dir: str = Field(
        default="modules",
        description="Module storage root, relative to data_dir.",
    )

    @field_validator("data_dir")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def modules_path(self) -> Path:
        return self.data_dir / self.modules_dir


class BundlerConfig(BaseModel):
    """Code unit bundling.

    Env vars:
        HOSTKIT__BUNDLER__ENABLED: Use the external bundler when available
        HOSTKIT__BUNDLER__EXECUTABLE: Bundler executable name or path
        HOSTKIT__BUNDLER__TIMEOUT_SEC: Max bundler run time
    """

    enabled: bool = Field(
        default=True,
        description="Bundle saved units with their local imports. "
        "When the executable is missing, source is stored unbundled.",
    )
    executable: str = Field(default="stickytape", description="Bundler executable.")
    timeout_sec: float = Field(default=30.0, description="Bundler timeout.")


class NamespaceConfig(BaseModel):
    """Namespace tree configuration.

    Env vars:
        HOSTKIT__NAMESPACE__ROOT_NAME: Global name of the namespace root
        HOSTKIT__NAMESPACE__MODULES_MOUNT: Sub-namespace where loaded units are mounted
    """

    root_name: str = Field(default="hk", description="Global name of the namespace root.")
    modules_mount: str = Field(
        default="modules",
        description="Sub-namespace of the root where loaded units are mounted.",
    )

    @field_validator("root_name", "modules_mount")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not v.isidentifier():
            raise ValueError(f"Must be a Python identifier, got {v!r}")
        return v


class WatcherConfig(BaseModel):
    """File observation configuration.

    Env vars:
        HOSTKIT__WATCHER__DEBOUNCE_MS: Batch window for file events
        HOSTKIT__WATCHER__STEP_MS: Poll step for the watch loop
        HOSTKIT__WATCHER__FORCE_POLLING: Use mtime polling instead of native events
    """

    debounce_ms: int = Field(default=200, description="Batch window for file events.")
    step_ms: int = Field(default=50, description="Watch loop step.")
    force_polling: bool = Field(
        default=False,
        description="Poll instead of native events (network mounts, WSL /mnt/*).",
    )


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        HOSTKIT__DATABASE__MAX_RETRIES: Max retry attempts for locked DB
        HOSTKIT__DATABASE__RETRY_BASE_DELAY_SEC: Base delay between retries
    """

    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )


class HostKitConfig(BaseModel):
    """Root configuration for HostKit.

    All settings can be configured via:
    1. Environment variables: HOSTKIT__SECTION__KEY
    2. Global YAML config file
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    bundler: BundlerConfig = Field(default_factory=BundlerConfig)
    namespace: NamespaceConfig = Field(default_factory=NamespaceConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

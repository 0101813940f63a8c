"""Core module exports."""

from hostkit.core.errors import (
    BundleError,
    ConfigError,
    ErrorCode,
    HostKitError,
    InternalError,
    InvalidAliasError,
    LoadError,
    NotFoundError,
    ObserveError,
    PathNotFoundError,
    ReservedNameError,
    StorageError,
    UnsupportedTargetError,
)
from hostkit.core.logging import (
    clear_session_id,
    configure_logging,
    get_logger,
    get_session_id,
    set_session_id,
)

__all__ = [
    # Errors
    "BundleError",
    "ConfigError",
    "ErrorCode",
    "HostKitError",
    "InternalError",
    "InvalidAliasError",
    "LoadError",
    "NotFoundError",
    "ObserveError",
    "PathNotFoundError",
    "ReservedNameError",
    "StorageError",
    "UnsupportedTargetError",
    # Logging
    "clear_session_id",
    "configure_logging",
    "get_logger",
    "get_session_id",
    "set_session_id",
]

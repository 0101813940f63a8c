"""HostKit error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Module store (3000 bundle, 3100 not found, 3200 load)
- 4xxx: Aliases and namespace traversal
- 5xxx: Observation
- 6xxx: Storage
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Literal

BundleStage = Literal["syntax", "import", "bundle"]


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Module bundling (30xx)
    BUNDLE_SYNTAX = 3001
    BUNDLE_IMPORT = 3002
    BUNDLE_FAILED = 3003

    # Not found (31xx)
    MODULE_NOT_FOUND = 3101
    MODULE_FILE_MISSING = 3102
    ALIAS_NOT_FOUND = 3103

    # Loading (32xx)
    MODULE_LOAD_FAILED = 3201

    # Aliases (40xx)
    ALIAS_RESERVED_NAME = 4001
    ALIAS_INVALID_NAME = 4002
    ALIAS_INVALID_PATH = 4003

    # Namespace traversal (41xx)
    PATH_NOT_FOUND = 4101

    # Observation targets (50xx)
    OBSERVE_UNCLASSIFIABLE = 5001
    OBSERVE_UNRESOLVABLE = 5002
    OBSERVE_NOT_OBSERVABLE = 5003

    # Observation hooks (51xx)
    OBSERVE_MISSING_HOOK = 5101
    OBSERVE_UNKNOWN_HOOK = 5102
    OBSERVE_NO_EVENT_LOOP = 5103

    # Storage (6xxx)
    STORAGE_MIGRATION_FAILED = 6001
    STORAGE_INVALID_VALUE = 6002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


_STAGE_CODES: dict[str, ErrorCode] = {
    "syntax": ErrorCode.BUNDLE_SYNTAX,
    "import": ErrorCode.BUNDLE_IMPORT,
    "bundle": ErrorCode.BUNDLE_FAILED,
}


@dataclass(frozen=True, slots=True)
class HostKitError(Exception):
    """Base error with structured context for callers and the CLI."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'BUNDLE_SYNTAX')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(HostKitError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class BundleError(HostKitError):
    """A code unit could not be normalized; nothing was persisted."""

    @property
    def stage(self) -> BundleStage:
        return self.details["stage"]  # type: ignore[no-any-return]

    @classmethod
    def at_stage(cls, stage: BundleStage, name: str, reason: str, **details: Any) -> "BundleError":
        labels = {
            "syntax": "syntax error",
            "import": "unresolved import",
            "bundle": "bundling failed",
        }
        return cls(
            code=_STAGE_CODES[stage],
            message=f"Cannot save '{name}': {labels[stage]}: {reason}",
            details={"stage": stage, "name": name, "reason": reason, **details},
        )

    @classmethod
    def syntax(cls, name: str, reason: str, **details: Any) -> "BundleError":
        return cls.at_stage("syntax", name, reason, **details)

    @classmethod
    def unresolved_import(cls, name: str, module: str, **details: Any) -> "BundleError":
        return cls.at_stage("import", name, f"could not resolve '{module}'", module=module, **details)

    @classmethod
    def bundle_failed(cls, name: str, reason: str, **details: Any) -> "BundleError":
        return cls.at_stage("bundle", name, reason, **details)


class NotFoundError(HostKitError):
    """No record exists for a given name."""

    @property
    def name(self) -> str:
        return self.details["name"]  # type: ignore[no-any-return]

    @classmethod
    def module(cls, name: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.MODULE_NOT_FOUND,
            message=f"Module '{name}' not found",
            details={"name": name},
        )

    @classmethod
    def module_file(cls, name: str, path: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.MODULE_FILE_MISSING,
            message=f"Module '{name}' has no backing file at {path}",
            details={"name": name, "path": path},
        )

    @classmethod
    def alias(cls, name: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.ALIAS_NOT_FOUND,
            message=f"Alias '{name}' not found",
            details={"name": name},
        )


class LoadError(HostKitError):
    """Materialization or execution of a loaded unit failed."""

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    @classmethod
    def execution_failed(cls, name: str, error: BaseException) -> "LoadError":
        return cls(
            code=ErrorCode.MODULE_LOAD_FAILED,
            message=f"Load failed for '{name}': {type(error).__name__}: {error}",
            details={"name": name, "error_type": type(error).__name__},
        )


class ReservedNameError(HostKitError):
    """Alias name collides with the reserved-identifier set."""

    @classmethod
    def for_alias(cls, name: str) -> "ReservedNameError":
        return cls(
            code=ErrorCode.ALIAS_RESERVED_NAME,
            message=f"Cannot use reserved name '{name}' for alias",
            details={"name": name},
        )


class InvalidAliasError(HostKitError):
    """Alias name or target path is malformed."""

    @classmethod
    def invalid_name(cls, name: str) -> "InvalidAliasError":
        return cls(
            code=ErrorCode.ALIAS_INVALID_NAME,
            message=f"Alias name '{name}' is not a valid identifier",
            details={"name": name},
        )

    @classmethod
    def invalid_path(cls, name: str, path: str) -> "InvalidAliasError":
        return cls(
            code=ErrorCode.ALIAS_INVALID_PATH,
            message=f"Alias '{name}' target '{path}' is not a dotted path",
            details={"name": name, "path": path},
        )


class PathNotFoundError(HostKitError):
    """Namespace traversal hit a missing segment."""

    @classmethod
    def missing_segment(cls, path: str, segment: str) -> "PathNotFoundError":
        return cls(
            code=ErrorCode.PATH_NOT_FOUND,
            message=f"Path {path} not found (missing '{segment}')",
            details={"path": path, "segment": segment},
        )


class UnsupportedTargetError(HostKitError):
    """Observe target could not be classified or resolved."""

    @classmethod
    def unclassifiable(cls, target: Any) -> "UnsupportedTargetError":
        return cls(
            code=ErrorCode.OBSERVE_UNCLASSIFIABLE,
            message=f"Cannot observe: {target!r}",
            details={"target": str(target)},
        )

    @classmethod
    def unresolvable(cls, target: str, reason: str) -> "UnsupportedTargetError":
        return cls(
            code=ErrorCode.OBSERVE_UNRESOLVABLE,
            message=f"Cannot observe '{target}': {reason}",
            details={"target": target, "reason": reason},
        )

    @classmethod
    def not_observable(cls, target: str, reason: str) -> "UnsupportedTargetError":
        return cls(
            code=ErrorCode.OBSERVE_NOT_OBSERVABLE,
            message=f"Cannot observe '{target}': {reason}",
            details={"target": target, "reason": reason},
        )


class ObserveError(HostKitError):
    """Observer hooks are invalid for the target kind."""

    @classmethod
    def missing_hook(cls, target: str, kind: str, required: str) -> "ObserveError":
        return cls(
            code=ErrorCode.OBSERVE_MISSING_HOOK,
            message=f"{kind.capitalize()} observation of '{target}' requires {required}",
            details={"target": target, "kind": kind, "required": required},
        )

    @classmethod
    def unknown_hook(cls, names: list[str]) -> "ObserveError":
        return cls(
            code=ErrorCode.OBSERVE_UNKNOWN_HOOK,
            message=f"Unknown observer hook(s): {', '.join(sorted(names))}",
            details={"hooks": sorted(names)},
        )

    @classmethod
    def no_event_loop(cls, target: str) -> "ObserveError":
        return cls(
            code=ErrorCode.OBSERVE_NO_EVENT_LOOP,
            message=f"File observation of '{target}' requires a running event loop",
            details={"target": target},
        )


class StorageError(HostKitError):
    """Persistent storage errors."""

    @classmethod
    def migration_failed(cls, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_MIGRATION_FAILED,
            message=f"Schema migration failed: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def invalid_value(cls, key: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_INVALID_VALUE,
            message=f"Cannot persist '{key}': {reason}",
            details={"key": key, "reason": reason},
        )


class InternalError(HostKitError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

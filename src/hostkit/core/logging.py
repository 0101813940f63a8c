"""Structured logging for a HostKit session.

Every event carries the session correlation id. HostKitError instances
passed as ``error=`` (or raised under ``exc_info``) are flattened into their
code and name so JSON logs can be filtered without parsing messages. Each
configured output gets its own renderer and level; the first file output is
remembered so the CLI can point users at it when a command fails.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from hostkit.config.models import LoggingConfig, LogOutputConfig

_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)

_state: dict[str, Path | None] = {"log_file": None}

# Third-party loggers that are chatty below WARNING
_QUIET_LOGGERS = ("watchfiles.main", "sqlalchemy.engine", "asyncio")


def get_session_id() -> str | None:
    return _session_id.get()


def set_session_id(session_id: str | None = None) -> str:
    """Set, or generate, the correlation id stamped on every event."""
    sid = session_id or uuid4().hex[:12]
    _session_id.set(sid)
    return sid


def clear_session_id() -> None:
    _session_id.set(None)


def get_log_file_path() -> Path | None:
    """First file output of the current configuration, if any."""
    return _state["log_file"]


def _stamp_session(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if sid := get_session_id():
        event_dict.setdefault("session_id", sid)
    return event_dict


def _flatten_host_errors(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    from hostkit.core.errors import HostKitError

    error = event_dict.get("error")
    if not isinstance(error, HostKitError):
        exc_info = event_dict.get("exc_info")
        if isinstance(exc_info, BaseException):
            error = exc_info
        elif isinstance(exc_info, tuple) and len(exc_info) == 3:
            error = exc_info[1]
    if isinstance(error, HostKitError):
        event_dict["error_code"] = error.code.value
        event_dict["error_name"] = error.error_name
        if event_dict.get("error") is error:
            event_dict["error"] = error.message
    return event_dict


def _level_number(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


def _handler_for(destination: str) -> logging.Handler:
    if destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def _formatter_for(
    output: LogOutputConfig, shared: list[structlog.types.Processor]
) -> logging.Formatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer(default=str)
    else:
        stream = sys.stdout if output.destination == "stdout" else sys.stderr
        interactive = output.destination in ("stderr", "stdout") and stream.isatty()
        renderer = structlog.dev.ConsoleRenderer(colors=interactive, pad_event_to=0)
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared)


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog through stdlib handlers, one per configured output.

    Args:
        config: Full logging configuration. Takes precedence over the
            simple parameters.
        json_format: Render JSON instead of console lines (simple setup).
        level: Root level (simple setup).
    """
    from hostkit.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level_number(config.level, logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _stamp_session,  # type: ignore[list-item]
        _flatten_host_errors,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigured per session and per CLI invocation
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_level))

    _state["log_file"] = None
    for output in config.outputs:
        if output.destination not in ("stderr", "stdout") and _state["log_file"] is None:
            _state["log_file"] = Path(output.destination)
        handler = _handler_for(output.destination)
        handler.setLevel(_level_number(output.level, root_level))
        handler.setFormatter(_formatter_for(output, shared))
        root.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]

"""CLI utilities."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import click

from hostkit.config import load_config
from hostkit.core.errors import HostKitError
from hostkit.core.logging import get_log_file_path, get_logger
from hostkit.session import Session

T = TypeVar("T")


def open_session(ctx: click.Context) -> Session:
    """Boot a session honoring the group-level options.

    Raises:
        click.ClickException: If configuration or startup fails.
    """
    data_dir: Path | None = (ctx.obj or {}).get("data_dir")
    overrides: dict[str, Any] = {"storage": {"data_dir": data_dir}} if data_dir else {}
    try:
        return Session.open(load_config(**overrides), setup_logging=False)
    except HostKitError as e:
        raise click.ClickException(e.message) from e


@contextmanager
def host_errors() -> Iterator[None]:
    """Surface HostKitError as a ClickException with its message.

    When a log file is configured the message points at it.
    """
    try:
        yield
    except HostKitError as e:
        get_logger("cli").debug("command_failed", error=e)
        message = e.message
        if log_file := get_log_file_path():
            message = f"{message} (details in {log_file})"
        raise click.ClickException(message) from e


def run_in_session(ctx: click.Context, action: Callable[[Session], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh session and close it afterwards."""

    async def _main() -> T:
        session = open_session(ctx)
        try:
            with host_errors():
                return await action(session)
        finally:
            await session.aclose()

    return asyncio.run(_main())

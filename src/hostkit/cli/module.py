"""hk module commands - save, load, list, remove and show persisted units."""

import sys
from pathlib import Path

import click
import questionary
from rich.console import Console
from rich.table import Table

from hostkit.cli.utils import run_in_session
from hostkit.session import Session


@click.group()
def module_group() -> None:
    """Manage persisted code units."""


@module_group.command("save")
@click.argument("name")
@click.argument("source", required=False)
@click.option("-c", "--code", "code", default=None, help="Inline source instead of a file")
@click.option("--hidden", is_flag=True, help="Do not show the unit in 'hk module list'")
@click.pass_context
def save_command(
    ctx: click.Context, name: str, source: str | None, code: str | None, hidden: bool
) -> None:
    """Save a code unit under NAME.

    SOURCE is a path to a .py file, or '-' to read source from stdin.
    Use --code to pass inline source.
    """
    if code is None and source is None:
        raise click.UsageError("Pass a SOURCE file, '-' for stdin, or --code")
    if code is not None:
        payload: str | Path = code
    elif source == "-":
        payload = sys.stdin.read()
    else:
        payload = Path(source).expanduser()  # type: ignore[arg-type]

    async def action(session: Session) -> None:
        summary = await session.modules.save(name, payload, visible=not hidden)
        click.echo(f"Saved {summary.key} ({summary.entry_point}) -> {summary.file_path}")

    run_in_session(ctx, action)


@module_group.command("load")
@click.argument("name")
@click.pass_context
def load_command(ctx: click.Context, name: str) -> None:
    """Load NAME and print its primary export."""

    async def action(session: Session) -> None:
        result = await session.modules.load(name, mount=False)
        click.echo(repr(result))

    run_in_session(ctx, action)


@module_group.command("list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List visible code units, newest first."""

    async def action(session: Session) -> None:
        modules = session.modules.list()
        console = Console()
        if not modules:
            console.print("[yellow]No modules saved yet[/yellow]")
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("Name", style="green")
        table.add_column("Entry")
        table.add_column("Namespace", style="dim")
        table.add_column("Updated")
        for m in modules:
            table.add_row(m.key, m.entry_point, m.namespace, m.updated_at.strftime("%Y-%m-%d %H:%M"))
        console.print(table)

    run_in_session(ctx, action)


@module_group.command("source")
@click.argument("name")
@click.pass_context
def source_command(ctx: click.Context, name: str) -> None:
    """Print the persisted source of NAME."""

    async def action(session: Session) -> None:
        click.echo(await session.modules.get_source(name), nl=False)

    run_in_session(ctx, action)


@module_group.command("remove")
@click.argument("name", required=False)
@click.option("--all", "remove_all", is_flag=True, help="Remove every module")
@click.option("--include-hidden", is_flag=True, help="With --all, also remove hidden modules")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def remove_command(
    ctx: click.Context, name: str | None, remove_all: bool, include_hidden: bool, yes: bool
) -> None:
    """Remove NAME, or every module with --all."""
    if (name is None) == (not remove_all):
        raise click.UsageError("Pass exactly one of NAME or --all")

    if remove_all and not yes:
        answer = questionary.confirm(
            "Remove every saved module? This cannot be undone.", default=False
        ).ask()
        if not answer:
            click.echo("Cancelled")
            return

    async def action(session: Session) -> None:
        if remove_all:
            count = await session.modules.remove_all(include_hidden=include_hidden)
            click.echo(f"Removed {count} module{'s' if count != 1 else ''}")
        elif await session.modules.remove(name):  # type: ignore[arg-type]
            click.echo(f"Removed {name}")
        else:
            click.echo(f"No module named {name}")

    run_in_session(ctx, action)

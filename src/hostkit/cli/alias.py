"""hk alias commands - manage persisted global aliases."""

import click

from hostkit.cli.utils import run_in_session
from hostkit.core.errors import NotFoundError
from hostkit.session import Session


@click.group()
def alias_group() -> None:
    """Manage global aliases."""


@alias_group.command("set")
@click.argument("name")
@click.argument("path")
@click.pass_context
def set_command(ctx: click.Context, name: str, path: str) -> None:
    """Bind NAME to the dotted namespace PATH."""

    async def action(session: Session) -> None:
        record = session.aliases.set(name, path)
        click.echo(f"Created alias: {record.name}() -> {record.path}")

    run_in_session(ctx, action)


@alias_group.command("get")
@click.argument("name")
@click.pass_context
def get_command(ctx: click.Context, name: str) -> None:
    """Show the path NAME is bound to."""

    async def action(session: Session) -> None:
        record = session.aliases.get(name)
        if record is None:
            raise NotFoundError.alias(name)
        click.echo(record.path)

    run_in_session(ctx, action)


@alias_group.command("list")
@click.argument("filter", required=False)
@click.pass_context
def list_command(ctx: click.Context, filter: str | None) -> None:
    """List aliases grouped by category, optionally filtered."""

    async def action(session: Session) -> None:
        session.aliases.show(filter)

    run_in_session(ctx, action)


@alias_group.command("remove")
@click.argument("name")
@click.pass_context
def remove_command(ctx: click.Context, name: str) -> None:
    """Remove alias NAME."""

    async def action(session: Session) -> None:
        if session.aliases.remove(name):
            click.echo(f"Removed alias: {name}")
        else:
            click.echo(f"No alias named {name}")

    run_in_session(ctx, action)

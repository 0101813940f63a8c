"""HostKit CLI - hk command."""

from pathlib import Path

import click

from hostkit.cli.alias import alias_group
from hostkit.cli.module import module_group
from hostkit.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="hk")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Override the data directory holding the database and module files",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, data_dir: Path | None) -> None:
    """HostKit - persisted code units, global aliases and observers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["data_dir"] = data_dir
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(module_group, name="module")
cli.add_command(alias_group, name="alias")


if __name__ == "__main__":
    cli()

"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from stockmcp.cli_commands.quote import quote
    from stockmcp.cli_commands.serve import serve

    cli.add_command(quote)
    cli.add_command(serve)

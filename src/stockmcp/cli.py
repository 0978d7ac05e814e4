"""stockmcp CLI entrypoint."""

from __future__ import annotations

import click

from stockmcp import __version__


@click.group()
@click.version_option(version=__version__, prog_name="stockmcp")
def main() -> None:
    """stockmcp — stock quotes over stdio JSON-RPC."""


# Register subcommands
from stockmcp.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()

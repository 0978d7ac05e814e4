"""``stockmcp quote`` — look up a quote through a spawned server."""

from __future__ import annotations

import asyncio
import sys

import click

from stockmcp.cli_commands._output import configure_logging, err_console, print_outcome, print_wire


@click.command()
@click.option(
    "--server",
    "server_command",
    default=None,
    help="Server command to spawn (default: this package's `serve`).",
)
@click.option(
    "--ticker",
    "-t",
    default=None,
    help="Ticker symbol to use; if omitted, the server will ask for one.",
)
@click.option("--timeout", type=float, default=None, help="Seconds to wait for each response.")
@click.option("--verbose", "-v", is_flag=True, help="Echo wire messages and debug logs.")
@click.option("--telemetry", is_flag=True, help="Export trace spans to stderr.")
@click.option("--otlp-endpoint", default=None, help="Export trace spans to this OTLP collector.")
def quote(
    server_command: str | None,
    ticker: str | None,
    timeout: float | None,
    verbose: bool,
    telemetry: bool,
    otlp_endpoint: str | None,
) -> None:
    """Fetch the latest price for a ticker via a stockmcp server."""
    from stockmcp.client import run_client
    from stockmcp.config import ClientConfig
    from stockmcp.prompts import ConsolePrompter
    from stockmcp.protocol.errors import ConnectionError

    configure_logging(verbose)
    if telemetry or otlp_endpoint:
        from stockmcp.utils.telemetry import configure_telemetry

        configure_telemetry("stockmcp-client", console=telemetry, otlp_endpoint=otlp_endpoint)

    command: str | list[str] = (
        server_command if server_command else [sys.executable, "-m", "stockmcp", "serve"]
    )
    config = ClientConfig(ticker=ticker, response_timeout=timeout)

    if verbose:
        err_console.print(f"Running client with server: {command} and ticker: {ticker}")

    try:
        outcome = asyncio.run(
            run_client(command, config, ConsolePrompter(), trace=print_wire if verbose else None)
        )
    except ConnectionError as exc:
        err_console.print(f"[red]Server not found:[/red] {exc}")
        sys.exit(1)

    print_outcome(outcome)
    sys.exit(outcome.exit_code)

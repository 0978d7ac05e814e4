"""``stockmcp serve`` — run the quote server on stdin/stdout."""

from __future__ import annotations

import asyncio

import click

from stockmcp.cli_commands._output import configure_logging


@click.command()
@click.option(
    "--default-ticker", default="NVDA", show_default=True, help="Ticker used when none is given."
)
@click.option(
    "--elicitation-timeout",
    type=float,
    default=None,
    help="Seconds to wait for the client to supply a ticker.",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr.")
@click.option("--telemetry", is_flag=True, help="Export trace spans to stderr.")
@click.option("--otlp-endpoint", default=None, help="Export trace spans to this OTLP collector.")
def serve(
    default_ticker: str,
    elicitation_timeout: float | None,
    verbose: bool,
    telemetry: bool,
    otlp_endpoint: str | None,
) -> None:
    """Serve the get_stock_price tool over stdio (Content-Length framed JSON-RPC)."""
    from stockmcp.config import ServerConfig
    from stockmcp.quotes.provider import StooqQuoteProvider
    from stockmcp.server import run_server

    configure_logging(verbose)
    if telemetry or otlp_endpoint:
        from stockmcp.utils.telemetry import configure_telemetry

        configure_telemetry("stockmcp-server", console=telemetry, otlp_endpoint=otlp_endpoint)

    config = ServerConfig(default_ticker=default_ticker, elicitation_timeout=elicitation_timeout)
    try:
        asyncio.run(run_server(config, StooqQuoteProvider()))
    except KeyboardInterrupt:
        pass

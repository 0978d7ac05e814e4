"""Shared CLI output formatters."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

if TYPE_CHECKING:
    from stockmcp.client import SessionOutcome
    from stockmcp.protocol.models import Message

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr; stdout may carry the protocol stream."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def print_wire(direction: str, message: Message) -> None:
    """Echo one wire message: ``→`` outbound in cyan, ``←`` inbound in yellow."""
    body = json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False)
    if direction == "send":
        console.print(f"→ {body}", style="cyan", markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(f"← {body}", style="yellow", markup=False, highlight=False, soft_wrap=True)


def print_outcome(outcome: SessionOutcome) -> None:
    """Render a finished session for the terminal."""
    from stockmcp.client import SessionStatus

    if outcome.status is SessionStatus.COMPLETED:
        console.print(format_result(outcome.result), markup=False, highlight=False)
    elif outcome.status is SessionStatus.TOOL_ERROR and outcome.error is not None:
        err_console.print(
            f"[red]Error {outcome.error.code}:[/red] {escape(outcome.error.message)}", highlight=False
        )
    elif outcome.status is SessionStatus.CAPABILITY_MISSING:
        err_console.print(
            f"[yellow]Server does not expose expected tool.[/yellow] "
            f"Available: {escape(str(outcome.available_tools))}",
            highlight=False,
        )
    else:
        err_console.print(f"[red]{outcome.status.value}:[/red] {escape(outcome.detail)}", highlight=False)


def format_result(result: Any) -> str:
    """Render a ``tools/call`` result.

    A text part holding a quote becomes ``SYMBOL PRICE``; other text is
    printed as-is; a result without text parts is printed as JSON.
    """
    content = result.get("content") if isinstance(result, dict) else None
    text = None
    for item in content or []:
        if isinstance(item, dict) and item.get("type") == "text":
            text = item.get("text")
            break
    if text is None:
        return json.dumps(result, separators=(",", ":"))

    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return str(text)
    if isinstance(parsed, dict) and parsed.get("symbol") and parsed.get("price") is not None:
        return f"{parsed['symbol']} {parsed['price']}"
    return str(text)

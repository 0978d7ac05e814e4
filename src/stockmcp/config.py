"""Session configuration — peer identity, tool catalog, defaults, deadlines.

Both configs are frozen: build one at startup and pass it to the session.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stockmcp import __version__
from stockmcp.protocol.models import Implementation, ToolDescriptor

PROTOCOL_VERSION = "2024-11-05"
QUOTE_TOOL = "get_stock_price"
DEFAULT_TICKER = "NVDA"

TICKER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "ticker": {
            "type": "string",
            "minLength": 1,
            "description": "Ticker symbol like NVDA, AAPL",
        },
    },
    "required": ["ticker"],
    "additionalProperties": False,
}

QUOTE_TOOL_DESCRIPTOR = ToolDescriptor(
    name=QUOTE_TOOL,
    description="Get latest stock price for any ticker",
    input_schema={
        "type": "object",
        "properties": {"ticker": {"type": "string", "description": "Ticker e.g. NVDA"}},
        "additionalProperties": False,
    },
)


class ServerConfig(BaseModel):
    """What the server announces and how its quote tool behaves.

    ``elicitation_timeout`` bounds the wait for a nested elicitation
    reply; ``None`` waits indefinitely.
    """

    model_config = ConfigDict(frozen=True)

    server_info: Implementation = Implementation(name="stock-price", version="1.0.0")
    protocol_version: str = PROTOCOL_VERSION
    tools: tuple[ToolDescriptor, ...] = (QUOTE_TOOL_DESCRIPTOR,)
    default_ticker: str = DEFAULT_TICKER
    elicitation_prompt: str = "Which stock ticker would you like to look up?"
    elicitation_schema: dict[str, Any] = Field(default_factory=lambda: dict(TICKER_SCHEMA))
    elicitation_timeout: float | None = None

    def capabilities(self) -> dict[str, Any]:
        return {"tools": {}, "elicitation": {}}


class ClientConfig(BaseModel):
    """Client identity, the tool it needs, and an optional preset ticker.

    ``response_timeout`` bounds each wait for an awaited response;
    ``None`` waits indefinitely.
    """

    model_config = ConfigDict(frozen=True)

    client_info: Implementation = Implementation(name="stockmcp-client", version=__version__)
    protocol_version: str = PROTOCOL_VERSION
    required_tool: str = QUOTE_TOOL
    ticker: str | None = None
    default_ticker: str = DEFAULT_TICKER
    response_timeout: float | None = None

    def capabilities(self) -> dict[str, Any]:
        return {"elicitation": {}}

    def tool_arguments(self) -> dict[str, Any]:
        ticker = (self.ticker or "").strip()
        return {"ticker": ticker} if ticker else {}

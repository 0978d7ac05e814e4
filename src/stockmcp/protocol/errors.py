"""Shared error types for the protocol layer.

Connection-level problems (:class:`TransportError` and its subclasses) abort
the local loop.  Request-level problems (:class:`RemoteError`) are answered
over the wire as JSON-RPC error responses and never stop a loop.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """JSON-RPC error codes used on the wire."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    APPLICATION_ERROR = -32000


class StockMCPError(Exception):
    """Base error for all stockmcp failures."""


# ---------------------------------------------------------------------------
# Connection-level
# ---------------------------------------------------------------------------


class TransportError(StockMCPError):
    """The message stream itself is unusable."""


class FramingError(TransportError):
    """A frame header could not be parsed."""


class DecodeError(TransportError):
    """A frame arrived intact but its body is not a valid message."""


class PeerDisconnected(TransportError):
    """The remote peer closed the stream before the exchange completed."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Peer disconnected" + (f": {detail}" if detail else ""))


class ConnectionError(TransportError):
    """Failed to start or reach the remote peer."""


class SessionTimeout(StockMCPError):
    """No response arrived within the configured deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for {method} response")


# ---------------------------------------------------------------------------
# Session-level
# ---------------------------------------------------------------------------


class CapabilityMissing(StockMCPError):
    """The peer's tool catalog lacks a tool this session needs."""

    def __init__(self, tool_name: str, available: list[str] | None = None) -> None:
        self.tool_name = tool_name
        self.available = list(available or [])
        super().__init__(
            f"Server does not expose expected tool {tool_name!r}. Available: {self.available}"
        )


# ---------------------------------------------------------------------------
# Request-level (answered over the wire)
# ---------------------------------------------------------------------------


class RemoteError(StockMCPError):
    """An error that is reported to the remote peer as an error response."""

    code: int = ErrorCode.APPLICATION_ERROR

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


class ProtocolError(RemoteError):
    """Unknown method or tool."""

    code = ErrorCode.METHOD_NOT_FOUND


class ApplicationError(RemoteError):
    """A tool ran and failed."""

    code = ErrorCode.APPLICATION_ERROR


class QuoteFetchError(StockMCPError):
    """The quote source could not produce a quote for a ticker."""

    def __init__(self, ticker: str, detail: str = "") -> None:
        self.ticker = ticker
        self.detail = detail
        super().__init__(f"Quote lookup failed for {ticker}" + (f": {detail}" if detail else ""))

"""Protocol layer — framing, correlation, and transports for stdio JSON-RPC."""

from stockmcp.protocol.correlation import Correlator, Inbound, PendingRequest
from stockmcp.protocol.errors import (
    ApplicationError,
    CapabilityMissing,
    ConnectionError,
    DecodeError,
    ErrorCode,
    FramingError,
    PeerDisconnected,
    ProtocolError,
    QuoteFetchError,
    RemoteError,
    SessionTimeout,
    StockMCPError,
    TransportError,
)
from stockmcp.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    QuoteResult,
    ToolDescriptor,
    parse_message,
)
from stockmcp.protocol.transport import MessageStream, StdioTransport, open_stdio_stream

__all__ = [
    "ApplicationError",
    "CapabilityMissing",
    "ConnectionError",
    "Correlator",
    "DecodeError",
    "ErrorCode",
    "FramingError",
    "Inbound",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Message",
    "MessageStream",
    "PeerDisconnected",
    "PendingRequest",
    "ProtocolError",
    "QuoteFetchError",
    "QuoteResult",
    "RemoteError",
    "SessionTimeout",
    "StdioTransport",
    "StockMCPError",
    "ToolDescriptor",
    "TransportError",
    "open_stdio_stream",
    "parse_message",
]

"""JSON-RPC 2.0 messages and MCP payloads.

Implements the envelope shared by both peers plus the handful of MCP
payloads this project exchanges: tool descriptors for ``tools/list``
and the quote result returned by ``tools/call``.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from stockmcp.protocol.errors import DecodeError

JSONRPC_VERSION = "2.0"

RequestId = Union[int, str]

# Method names
INITIALIZE = "initialize"
TOOLS_LIST = "tools/list"
TOOLS_CALL = "tools/call"
ELICITATION_CREATE = "elicitation/create"

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request: expects exactly one correlated response."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId
    method: str
    params: dict[str, Any] | list[Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        return data


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (a request without an id)."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] | list[Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        return data


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response carrying either a result or an error."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId | None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> JsonRpcResponse:
        if self.error is not None and self.result is not None:
            msg = "response must not carry both result and error"
            raise ValueError(msg)
        return self

    @classmethod
    def success(cls, request_id: RequestId | None, result: Any) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls, request_id: RequestId | None, code: int, message: str, data: Any = None
    ) -> JsonRpcResponse:
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        return data


Message = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse]


def parse_message(payload: Any) -> Message:
    """Build a typed message from a decoded JSON body.

    The shape is decided by structure alone: ``method`` without
    ``result``/``error`` is a request (with ``id``) or notification
    (without); ``id`` plus ``result`` or ``error`` without ``method`` is a
    response.  Anything else raises :class:`DecodeError`.
    """
    if not isinstance(payload, dict):
        msg = f"message body must be a JSON object, got {type(payload).__name__}"
        raise DecodeError(msg)

    has_method = "method" in payload
    has_outcome = "result" in payload or "error" in payload

    try:
        if has_method and not has_outcome:
            if "id" in payload and payload["id"] is not None:
                return JsonRpcRequest.model_validate(payload)
            return JsonRpcNotification.model_validate(
                {k: v for k, v in payload.items() if k != "id"}
            )
        if has_outcome and not has_method and "id" in payload:
            return JsonRpcResponse.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"malformed message: {exc}") from exc

    msg = f"message is neither a request nor a response: keys={sorted(payload)}"
    raise DecodeError(msg)


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class Implementation(BaseModel):
    """Name and version a peer announces during ``initialize``."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str


class ToolDescriptor(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


class QuoteResult(BaseModel):
    """Latest price data for one ticker."""

    symbol: str
    price: float
    date: str | None = None
    time: str | None = None
    name: str | None = None

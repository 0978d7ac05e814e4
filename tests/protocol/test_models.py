"""Tests for JSON-RPC models and structural message parsing."""

import pytest

from stockmcp.protocol.errors import DecodeError
from stockmcp.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    QuoteResult,
    ToolDescriptor,
    parse_message,
)


class TestJsonRpcRequest:
    def test_defaults(self) -> None:
        req = JsonRpcRequest(id="list-1", method="tools/list")
        assert req.jsonrpc == "2.0"
        assert req.params is None

    def test_wire_shape_omits_missing_params(self) -> None:
        data = JsonRpcRequest(id=1, method="tools/list").to_wire()
        assert data == {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}

    def test_wire_shape_with_params(self) -> None:
        data = JsonRpcRequest(id="c", method="tools/call", params={"name": "x"}).to_wire()
        assert data["params"] == {"name": "x"}


class TestJsonRpcResponse:
    def test_success(self) -> None:
        resp = JsonRpcResponse.success("a", {"tools": []})
        assert resp.result == {"tools": []}
        assert not resp.is_error

    def test_failure(self) -> None:
        resp = JsonRpcResponse.failure("a", -32601, "Method not found")
        assert resp.is_error
        assert resp.error == JsonRpcError(code=-32601, message="Method not found")
        assert resp.to_wire() == {
            "jsonrpc": "2.0",
            "id": "a",
            "error": {"code": -32601, "message": "Method not found"},
        }

    def test_rejects_result_and_error(self) -> None:
        with pytest.raises(ValueError):
            JsonRpcResponse(id=1, result={"x": 1}, error=JsonRpcError(code=1, message="m"))

    def test_null_result_is_kept_on_the_wire(self) -> None:
        assert JsonRpcResponse.success(3, None).to_wire() == {"jsonrpc": "2.0", "id": 3, "result": None}


class TestParseMessage:
    def test_request(self) -> None:
        msg = parse_message({"jsonrpc": "2.0", "id": "elic-1", "method": "elicitation/create"})
        assert isinstance(msg, JsonRpcRequest)
        assert msg.id == "elic-1"

    def test_request_with_positional_params(self) -> None:
        msg = parse_message({"jsonrpc": "2.0", "id": 3, "method": "tools/list", "params": [1]})
        assert isinstance(msg, JsonRpcRequest)
        assert msg.params == [1]

    def test_notification_without_id(self) -> None:
        msg = parse_message({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert isinstance(msg, JsonRpcNotification)

    def test_notification_with_null_id(self) -> None:
        msg = parse_message({"jsonrpc": "2.0", "id": None, "method": "ping"})
        assert isinstance(msg, JsonRpcNotification)

    def test_response_with_result(self) -> None:
        msg = parse_message({"jsonrpc": "2.0", "id": 7, "result": {"ok": True}})
        assert isinstance(msg, JsonRpcResponse)
        assert msg.result == {"ok": True}

    def test_response_with_error(self) -> None:
        msg = parse_message(
            {"jsonrpc": "2.0", "id": 7, "error": {"code": -32000, "message": "No price"}}
        )
        assert isinstance(msg, JsonRpcResponse)
        assert msg.error is not None
        assert msg.error.code == -32000

    def test_non_object_rejected(self) -> None:
        with pytest.raises(DecodeError, match="JSON object"):
            parse_message([1, 2, 3])

    def test_method_and_result_rejected(self) -> None:
        with pytest.raises(DecodeError):
            parse_message({"jsonrpc": "2.0", "id": 1, "method": "x", "result": {}})

    def test_response_without_id_rejected(self) -> None:
        with pytest.raises(DecodeError):
            parse_message({"jsonrpc": "2.0", "result": {}})

    def test_bad_field_types_rejected(self) -> None:
        with pytest.raises(DecodeError, match="malformed"):
            parse_message({"jsonrpc": "2.0", "id": 1, "method": 42})

    def test_wire_round_trip(self) -> None:
        for message in (
            JsonRpcRequest(id="call-3", method="tools/call", params={"name": "t", "arguments": {}}),
            JsonRpcNotification(method="notifications/initialized"),
            JsonRpcResponse.success("call-3", {"content": []}),
            JsonRpcResponse.failure(9, -32601, "Method not found"),
        ):
            assert parse_message(message.to_wire()) == message


class TestToolDescriptor:
    def test_alias_round_trip(self) -> None:
        tool = ToolDescriptor(
            name="get_stock_price",
            description="Get latest stock price",
            input_schema={"type": "object", "properties": {"ticker": {"type": "string"}}},
        )
        data = tool.model_dump(by_alias=True)
        assert "inputSchema" in data
        assert ToolDescriptor.model_validate(data) == tool


class TestQuoteResult:
    def test_optional_fields(self) -> None:
        quote = QuoteResult(symbol="AAPL", price=189.5)
        assert quote.date is None
        assert quote.name is None

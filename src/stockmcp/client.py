"""ClientSession — drives one quote lookup against a stockmcp server.

The session walks a fixed sequence of exchanges::

    UNINITIALIZED -> AWAITING_INIT -> AWAITING_TOOL_LIST
                  -> AWAITING_CALL_RESULT -> DONE

While the ``tools/call`` response is outstanding the server may ask us
for input (``elicitation/create``).  Each such nested request is answered
as it arrives, and the session keeps waiting for the original response.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from stockmcp.config import ClientConfig
from stockmcp.protocol.correlation import Correlator, Inbound
from stockmcp.protocol.errors import (
    CapabilityMissing,
    DecodeError,
    ErrorCode,
    FramingError,
    PeerDisconnected,
    SessionTimeout,
)
from stockmcp.protocol.models import (
    ELICITATION_CREATE,
    INITIALIZE,
    TOOLS_CALL,
    TOOLS_LIST,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
)
from stockmcp.protocol.transport import StdioTransport
from stockmcp.utils.telemetry import (
    ATTR_METHOD,
    ATTR_REQUEST_ID,
    ATTR_SESSION_STATUS,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from stockmcp.prompts import InputPrompter
    from stockmcp.protocol.transport import MessageStream, WireTrace

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_INIT = "awaiting_init"
    AWAITING_TOOL_LIST = "awaiting_tool_list"
    AWAITING_CALL_RESULT = "awaiting_call_result"
    DONE = "done"


class SessionStatus(str, Enum):
    """How a session ended.  Each status has its own process exit code."""

    COMPLETED = "completed"
    TOOL_ERROR = "tool_error"
    CAPABILITY_MISSING = "capability_missing"
    PEER_DISCONNECTED = "peer_disconnected"
    TIMEOUT = "timeout"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    SessionStatus.COMPLETED: 0,
    SessionStatus.TOOL_ERROR: 1,
    SessionStatus.CAPABILITY_MISSING: 2,
    SessionStatus.PEER_DISCONNECTED: 3,
    SessionStatus.TIMEOUT: 4,
}


@dataclass(frozen=True)
class SessionOutcome:
    """Terminal result of a :class:`ClientSession`."""

    status: SessionStatus
    result: Any = None
    error: JsonRpcError | None = None
    detail: str = ""
    available_tools: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @classmethod
    def from_response(cls, response: JsonRpcResponse) -> SessionOutcome:
        if response.error is not None:
            return cls(
                status=SessionStatus.TOOL_ERROR,
                error=response.error,
                detail=response.error.message,
            )
        return cls(status=SessionStatus.COMPLETED, result=response.result)


class ClientSession:
    """Runs the initialize / tools/list / tools/call sequence over a stream.

    Usage::

        session = ClientSession(stream, ClientConfig(ticker="AAPL"), ConsolePrompter())
        outcome = await session.run()
    """

    def __init__(
        self,
        stream: MessageStream,
        config: ClientConfig,
        prompter: InputPrompter,
        correlator: Correlator | None = None,
    ) -> None:
        self._stream = stream
        self._config = config
        self._prompter = prompter
        self._correlator = correlator or Correlator()
        self._state = SessionState.UNINITIALIZED
        self._server_info: dict[str, Any] = {}
        self._nested_handled = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def server_info(self) -> dict[str, Any]:
        return dict(self._server_info)

    @property
    def nested_handled(self) -> int:
        """Number of nested requests answered while awaiting the call result."""
        return self._nested_handled

    async def run(self) -> SessionOutcome:
        """Run the session to a terminal outcome.  Never raises for peer failures."""
        with _tracer.start_as_current_span("stockmcp.client.session") as span:
            outcome = await self._run()
            span.set_attribute(ATTR_SESSION_STATUS, outcome.status.value)
            return outcome

    async def _run(self) -> SessionOutcome:
        try:
            await self._initialize()
            await self._require_tool()
            response = await self._call_tool()
        except CapabilityMissing as exc:
            logger.warning("%s", exc)
            return SessionOutcome(
                status=SessionStatus.CAPABILITY_MISSING,
                detail=str(exc),
                available_tools=exc.available,
            )
        except PeerDisconnected as exc:
            logger.warning("%s while %s", exc, self._state.value)
            return SessionOutcome(status=SessionStatus.PEER_DISCONNECTED, detail=str(exc))
        except SessionTimeout as exc:
            logger.warning("%s", exc)
            return SessionOutcome(status=SessionStatus.TIMEOUT, detail=str(exc))
        finally:
            self._state = SessionState.DONE
            self._correlator.clear()
        return SessionOutcome.from_response(response)

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------

    async def _initialize(self) -> None:
        response = await self._exchange(
            SessionState.AWAITING_INIT,
            INITIALIZE,
            {
                "protocolVersion": self._config.protocol_version,
                "clientInfo": self._config.client_info.model_dump(),
                "capabilities": self._config.capabilities(),
            },
            scope="init",
        )
        if isinstance(response.result, dict):
            self._server_info = dict(response.result.get("serverInfo") or {})
        logger.debug("Initialized with server %s", self._server_info or "(unnamed)")

    async def _require_tool(self) -> list[str]:
        response = await self._exchange(SessionState.AWAITING_TOOL_LIST, TOOLS_LIST, None, scope="list")
        names = _tool_names(response.result)
        if self._config.required_tool not in names:
            raise CapabilityMissing(self._config.required_tool, names)
        return names

    async def _call_tool(self) -> JsonRpcResponse:
        return await self._exchange(
            SessionState.AWAITING_CALL_RESULT,
            TOOLS_CALL,
            {"name": self._config.required_tool, "arguments": self._config.tool_arguments()},
            scope="call",
        )

    async def _exchange(
        self,
        state: SessionState,
        method: str,
        params: dict[str, Any] | None,
        *,
        scope: str,
    ) -> JsonRpcResponse:
        request = self._correlator.request(method, params, scope=scope)
        self._state = state
        await self._stream.send(request)
        return await self._await_reply(request)

    async def _await_reply(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Read until the response to *request* arrives.

        Nested requests are serviced only while awaiting the tool call
        result; in the handshake states they are discarded.
        """
        while True:
            message = await self._receive(request.method)
            kind = self._correlator.classify(message)

            if kind is Inbound.REPLY:
                assert isinstance(message, JsonRpcResponse)
                self._correlator.resolve(message)
                if Correlator.is_reply_to(message, request.id):
                    return message
                continue

            if kind is Inbound.STRAY_REPLY:
                assert isinstance(message, JsonRpcResponse)
                self._correlator.resolve(message)
                continue

            if kind is Inbound.REQUEST and self._state is SessionState.AWAITING_CALL_RESULT:
                assert isinstance(message, JsonRpcRequest)
                await self._service(message)
                continue

            logger.warning(
                "Discarding %s %r while %s",
                kind.value,
                getattr(message, "method", None),
                self._state.value,
            )

    async def _receive(self, method: str) -> Message:
        timeout = self._config.response_timeout
        try:
            if timeout is None:
                message = await self._stream.receive()
            else:
                message = await asyncio.wait_for(self._stream.receive(), timeout)
        except asyncio.TimeoutError:
            raise SessionTimeout(method, timeout or 0.0) from None
        except (FramingError, DecodeError) as exc:
            logger.error("Malformed message from server: %s", exc)
            raise PeerDisconnected(f"malformed stream: {exc}") from exc
        if message is None:
            raise PeerDisconnected(f"server closed the stream awaiting {method} response")
        return message

    # ------------------------------------------------------------------
    # Nested requests
    # ------------------------------------------------------------------

    async def _service(self, request: JsonRpcRequest) -> None:
        """Answer one nested request from the server."""
        with _tracer.start_as_current_span("stockmcp.client.nested") as span:
            span.set_attribute(ATTR_METHOD, request.method)
            span.set_attribute(ATTR_REQUEST_ID, str(request.id))
            if request.method == ELICITATION_CREATE:
                params = request.params if isinstance(request.params, dict) else {}
                answer = await asyncio.to_thread(self._answer_elicitation, params)
                reply = JsonRpcResponse.success(request.id, answer)
            else:
                logger.warning("Server sent unsupported request %r", request.method)
                reply = JsonRpcResponse.failure(
                    request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}"
                )
            await self._stream.send(reply)
        self._nested_handled += 1

    def _answer_elicitation(self, params: dict[str, Any]) -> dict[str, Any]:
        prompt = str(params.get("message") or "Input required")
        schema = params.get("schema")
        properties = schema.get("properties") if isinstance(schema, dict) else None

        if isinstance(properties, dict) and "ticker" in properties:
            preset = (self._config.ticker or "").strip()
            if preset:
                return {"ticker": preset}
            ticker = self._prompter.prompt_for_ticker(self._config.default_ticker, prompt)
            return {"ticker": ticker.strip() or self._config.default_ticker}
        return {"value": self._prompter.prompt_freeform(prompt)}


def _tool_names(result: Any) -> list[str]:
    if not isinstance(result, dict):
        return []
    tools = result.get("tools") or []
    return [str(tool["name"]) for tool in tools if isinstance(tool, dict) and "name" in tool]


async def run_client(
    command: str | list[str],
    config: ClientConfig,
    prompter: InputPrompter,
    *,
    trace: WireTrace | None = None,
) -> SessionOutcome:
    """Spawn the server, run one session, and always tear the process down."""
    transport = StdioTransport(command)
    stream = await transport.connect(trace=trace)
    try:
        with _tracer.start_as_current_span("stockmcp.client.run") as span:
            span.set_attribute(ATTR_TOOL_NAME, config.required_tool)
            return await ClientSession(stream, config, prompter).run()
    finally:
        await transport.close()

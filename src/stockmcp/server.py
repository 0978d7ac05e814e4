"""ServerSession — answers JSON-RPC requests and serves the quote tool.

A single receive loop dispatches each inbound request to a handler and
writes exactly one response for it.  The ``tools/call`` handler may pause
to ask the client for a missing ticker (``elicitation/create``); while it
waits, unrelated inbound requests get an error reply so that nothing is
dropped and the nested exchange keeps its own correlation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from stockmcp.config import QUOTE_TOOL, ServerConfig
from stockmcp.protocol.correlation import Correlator, Inbound
from stockmcp.protocol.errors import (
    ApplicationError,
    DecodeError,
    ErrorCode,
    FramingError,
    PeerDisconnected,
    ProtocolError,
    QuoteFetchError,
    RemoteError,
    TransportError,
)
from stockmcp.protocol.models import (
    ELICITATION_CREATE,
    INITIALIZE,
    TOOLS_CALL,
    TOOLS_LIST,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
)
from stockmcp.protocol.transport import open_stdio_stream
from stockmcp.utils.telemetry import (
    ATTR_ELICITED,
    ATTR_METHOD,
    ATTR_REQUEST_ID,
    ATTR_TICKER,
    ATTR_TOOL_NAME,
    get_tracer,
    mark_error,
)

if TYPE_CHECKING:
    from stockmcp.protocol.transport import MessageStream
    from stockmcp.quotes.provider import QuoteProvider

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

Handler = Callable[[JsonRpcRequest], Awaitable[Any]]

NOT_HANDLED_DURING_ELICITATION = "Method not handled during elicitation"


class ServerSession:
    """Serves one client connection until the client closes the stream.

    Usage::

        stream = await open_stdio_stream()
        await ServerSession(stream, ServerConfig(), StooqQuoteProvider()).serve()
    """

    def __init__(
        self,
        stream: MessageStream,
        config: ServerConfig,
        provider: QuoteProvider,
        correlator: Correlator | None = None,
    ) -> None:
        self._stream = stream
        self._config = config
        self._provider = provider
        self._correlator = correlator or Correlator()
        self._client_capabilities: dict[str, Any] = {}
        self._read_task: asyncio.Future[Message | None] | None = None
        self._handlers: dict[str, Handler] = {
            INITIALIZE: self._handle_initialize,
            TOOLS_LIST: self._handle_tools_list,
            TOOLS_CALL: self._handle_tools_call,
        }

    @property
    def client_supports_elicitation(self) -> bool:
        return "elicitation" in self._client_capabilities

    async def serve(self) -> None:
        """Dispatch requests until end of stream."""
        logger.info("Serving %s %s", self._config.server_info.name, self._config.server_info.version)
        try:
            while True:
                message = await self._next_message()
                if message is None:
                    logger.info("Client closed the stream")
                    break
                await self._dispatch(message)
        except (FramingError, DecodeError) as exc:
            logger.error("Malformed message, closing session: %s", exc)
        except PeerDisconnected as exc:
            logger.info("%s", exc)
        finally:
            if self._read_task is not None:
                self._read_task.cancel()
                self._read_task = None
            self._correlator.clear()

    async def _next_message(self, timeout: float | None = None) -> Message | None:
        """Receive the next message, waiting at most *timeout* seconds.

        A read that outlives the timeout is left running and picked up by
        the next call, so a frame is never cut in half.  Raises
        :class:`asyncio.TimeoutError` when the deadline passes first.
        """
        if self._read_task is None:
            self._read_task = asyncio.ensure_future(self._stream.receive())
        done, _ = await asyncio.wait({self._read_task}, timeout=timeout)
        if not done:
            raise asyncio.TimeoutError
        task, self._read_task = self._read_task, None
        return task.result()

    async def _dispatch(self, message: Message) -> None:
        kind = self._correlator.classify(message)
        if kind is Inbound.NOTIFICATION:
            logger.debug("Notification %r", getattr(message, "method", None))
            return
        if kind in (Inbound.REPLY, Inbound.STRAY_REPLY):
            assert isinstance(message, JsonRpcResponse)
            self._correlator.resolve(message)
            return

        assert isinstance(message, JsonRpcRequest)
        await self._stream.send(await self._respond(message))

    async def _respond(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Run the handler for *request* and turn its outcome into a response."""
        with _tracer.start_as_current_span("stockmcp.server.request") as span:
            span.set_attribute(ATTR_METHOD, request.method)
            span.set_attribute(ATTR_REQUEST_ID, str(request.id))
            try:
                handler = self._handlers.get(request.method)
                if handler is None:
                    raise ProtocolError("Method not found")
                if request.params is not None and not isinstance(request.params, dict):
                    msg = "Invalid params: expected an object"
                    raise RemoteError(msg, code=ErrorCode.INVALID_PARAMS)
                result = await handler(request)
            except TransportError:
                raise
            except RemoteError as exc:
                mark_error(span, exc.code, exc.message)
                logger.info("%s %r failed: %s", request.method, request.id, exc.message)
                return JsonRpcResponse.failure(request.id, exc.code, exc.message, exc.data)
            except Exception as exc:
                mark_error(span, ErrorCode.APPLICATION_ERROR, str(exc))
                logger.exception("Handler for %s %r raised", request.method, request.id)
                return JsonRpcResponse.failure(request.id, ErrorCode.APPLICATION_ERROR, str(exc))
            return JsonRpcResponse.success(request.id, result)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = request.params or {}
        capabilities = params.get("capabilities")
        self._client_capabilities = dict(capabilities) if isinstance(capabilities, dict) else {}
        logger.info("Client %s initialized", params.get("clientInfo"))
        return {
            "protocolVersion": self._config.protocol_version,
            "serverInfo": self._config.server_info.model_dump(),
            "capabilities": self._config.capabilities(),
        }

    async def _handle_tools_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"tools": [tool.model_dump(by_alias=True) for tool in self._config.tools]}

    async def _handle_tools_call(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = request.params or {}
        name = params.get("name")
        if name != QUOTE_TOOL:
            raise ProtocolError(f"Unknown tool: {name}")

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise ApplicationError("Tool arguments must be an object")

        with _tracer.start_as_current_span("stockmcp.tools.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, QUOTE_TOOL)
            ticker = str(arguments.get("ticker") or "").strip()
            span.set_attribute(ATTR_ELICITED, not ticker)
            if not ticker:
                ticker = await self._elicit_ticker()
            span.set_attribute(ATTR_TICKER, ticker)

            try:
                quote = await self._provider.fetch_quote(ticker)
            except QuoteFetchError as exc:
                raise ApplicationError(str(exc)) from exc
            return {"content": [{"type": "text", "text": quote.model_dump_json()}]}

    # ------------------------------------------------------------------
    # Elicitation
    # ------------------------------------------------------------------

    async def _elicit_ticker(self) -> str:
        """Ask the client for a ticker, falling back to the default."""
        default = self._config.default_ticker
        if not self.client_supports_elicitation:
            logger.info("Client cannot be elicited; using default ticker %s", default)
            return default

        response = await self.elicit(self._config.elicitation_prompt, self._config.elicitation_schema)
        ticker = _elicited_ticker(response)
        if not ticker:
            logger.info("No ticker elicited; using default ticker %s", default)
            return default
        return ticker

    async def elicit(self, message: str, schema: dict[str, Any]) -> JsonRpcResponse | None:
        """Send ``elicitation/create`` and wait for its response.

        Requests that arrive in the meantime are answered with an error;
        they are never dropped.  Returns ``None`` if the configured
        deadline passes first.  Raises :class:`PeerDisconnected` if the
        client goes away.
        """
        request = self._correlator.request(
            ELICITATION_CREATE, {"message": message, "schema": schema}, scope="elic"
        )
        with _tracer.start_as_current_span("stockmcp.server.elicit") as span:
            span.set_attribute(ATTR_REQUEST_ID, str(request.id))
            await self._stream.send(request)
            try:
                return await self._await_elicitation(request)
            except asyncio.TimeoutError:
                self._correlator.abandon(request.id)
                logger.warning(
                    "Elicitation %s timed out after %ss", request.id, self._config.elicitation_timeout
                )
                return None

    async def _await_elicitation(self, request: JsonRpcRequest) -> JsonRpcResponse:
        timeout = self._config.elicitation_timeout
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
            message = await self._next_message(remaining)
            if message is None:
                raise PeerDisconnected("client closed the stream during elicitation")

            kind = self._correlator.classify(message)
            if kind in (Inbound.REPLY, Inbound.STRAY_REPLY):
                assert isinstance(message, JsonRpcResponse)
                self._correlator.resolve(message)
                if kind is Inbound.REPLY and Correlator.is_reply_to(message, request.id):
                    return message
            elif kind is Inbound.REQUEST:
                assert isinstance(message, JsonRpcRequest)
                logger.info("Rejecting %s %r during elicitation", message.method, message.id)
                await self._stream.send(
                    JsonRpcResponse.failure(
                        message.id, ErrorCode.METHOD_NOT_FOUND, NOT_HANDLED_DURING_ELICITATION
                    )
                )
            else:
                logger.debug("Ignoring notification during elicitation")


def _elicited_ticker(response: JsonRpcResponse | None) -> str:
    """Extract a ticker from an elicitation reply; ``""`` if declined or blank."""
    if response is None or response.error is not None:
        return ""
    result = response.result
    if not isinstance(result, dict):
        return ""
    if result.get("action") not in (None, "accept"):
        return ""
    answer = result["content"] if isinstance(result.get("content"), dict) else result
    return str(answer.get("ticker") or "").strip()


async def run_server(config: ServerConfig, provider: QuoteProvider) -> None:
    """Serve one client over this process's stdin/stdout."""
    stream = await open_stdio_stream()
    await ServerSession(stream, config, provider).serve()

"""Shared helpers: in-memory pipes, a fake quote source, a scripted prompter."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from stockmcp.protocol.errors import QuoteFetchError
from stockmcp.protocol.models import JsonRpcRequest, JsonRpcResponse, Message, QuoteResult
from stockmcp.protocol.transport import MessageStream


class MemoryWriter:
    """Writes straight into the peer's :class:`asyncio.StreamReader`."""

    def __init__(self, target: asyncio.StreamReader) -> None:
        self._target = target
        self.frames: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.frames.append(data)
        self._target.feed_data(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self._target.feed_eof()


class Endpoint:
    """One side of an in-memory connection."""

    def __init__(self, stream: MessageStream, writer: MemoryWriter) -> None:
        self.stream = stream
        self.writer = writer

    async def send(self, message: Message) -> None:
        await self.stream.send(message)

    async def receive(self) -> Message | None:
        return await asyncio.wait_for(self.stream.receive(), 5)

    async def request(self, method: str, params: dict[str, Any] | None = None, *, id: Any) -> None:
        await self.send(JsonRpcRequest(id=id, method=method, params=params))

    async def reply(self, request_id: Any, result: Any) -> None:
        await self.send(JsonRpcResponse.success(request_id, result))

    def close(self) -> None:
        self.writer.close()


def make_connection() -> tuple[Endpoint, Endpoint]:
    """Return two connected endpoints.  Must be called inside a running loop."""
    left_in = asyncio.StreamReader()
    right_in = asyncio.StreamReader()
    left_out = MemoryWriter(right_in)
    right_out = MemoryWriter(left_in)
    return (
        Endpoint(MessageStream(left_in, left_out), left_out),
        Endpoint(MessageStream(right_in, right_out), right_out),
    )


class FakeQuoteProvider:
    """Returns canned prices; unknown tickers fail like the real source."""

    def __init__(self, prices: dict[str, float] | None = None) -> None:
        self.prices = prices if prices is not None else {"AAPL": 189.5, "NVDA": 121.25}
        self.calls: list[str] = []

    async def fetch_quote(self, ticker: str) -> QuoteResult:
        self.calls.append(ticker)
        symbol = ticker.upper()
        if symbol not in self.prices:
            raise QuoteFetchError(ticker, "No price")
        return QuoteResult(symbol=symbol, price=self.prices[symbol], date="2026-10-16", time="22:00:09")


class ScriptedPrompter:
    """Answers prompts from a queue; blank once the queue is empty."""

    def __init__(self, answers: list[str] | None = None) -> None:
        self.answers = list(answers or [])
        self.ticker_prompts: list[tuple[str, str]] = []
        self.freeform_prompts: list[str] = []

    def prompt_for_ticker(self, default_if_blank: str, message: str = "Ticker") -> str:
        self.ticker_prompts.append((default_if_blank, message))
        answer = self.answers.pop(0) if self.answers else ""
        return answer.strip() or default_if_blank

    def prompt_freeform(self, label: str) -> str:
        self.freeform_prompts.append(label)
        return self.answers.pop(0) if self.answers else ""


@pytest.fixture
def quote_provider() -> FakeQuoteProvider:
    return FakeQuoteProvider()


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()

"""E2E tests: a real ClientSession against a real ServerSession."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from stockmcp.cli_commands._output import format_result
from stockmcp.client import ClientSession, SessionOutcome, SessionStatus, run_client
from stockmcp.config import ClientConfig, ServerConfig
from stockmcp.server import ServerSession
from tests.conftest import FakeQuoteProvider, ScriptedPrompter, make_connection

HERE = Path(__file__).parent
ROOT = HERE.parent.parent


async def _session(
    config: ClientConfig, prompter: ScriptedPrompter, provider: FakeQuoteProvider
) -> SessionOutcome:
    client_end, server_end = make_connection()
    server = ServerSession(server_end.stream, ServerConfig(), provider)
    client = ClientSession(client_end.stream, config, prompter)

    async def run_client_then_hang_up() -> SessionOutcome:
        try:
            return await client.run()
        finally:
            client_end.close()

    outcome, _ = await asyncio.wait_for(asyncio.gather(run_client_then_hang_up(), server.serve()), 5)
    return outcome


def _spawn(script: str) -> list[str]:
    """Command running *script* with the repo root importable (for ``tests.conftest``)."""
    bootstrap = (
        f"import runpy, sys; sys.path.insert(0, {str(ROOT)!r}); "
        f"runpy.run_path({str(HERE / script)!r}, run_name='__main__')"
    )
    return [sys.executable, "-c", bootstrap]


class TestInProcess:
    async def test_elicited_ticker(self, prompter: ScriptedPrompter, quote_provider: FakeQuoteProvider) -> None:
        prompter.answers.append("AAPL")
        outcome = await _session(ClientConfig(), prompter, quote_provider)

        assert outcome.ok
        assert json.loads(outcome.result["content"][0]["text"])["symbol"] == "AAPL"
        assert format_result(outcome.result) == "AAPL 189.5"
        assert len(prompter.ticker_prompts) == 1
        assert quote_provider.calls == ["AAPL"]

    async def test_preset_ticker_skips_elicitation(
        self, prompter: ScriptedPrompter, quote_provider: FakeQuoteProvider
    ) -> None:
        outcome = await _session(ClientConfig(ticker="nvda"), prompter, quote_provider)
        assert format_result(outcome.result) == "NVDA 121.25"
        assert prompter.ticker_prompts == []

    async def test_blank_elicitation_uses_default(
        self, prompter: ScriptedPrompter, quote_provider: FakeQuoteProvider
    ) -> None:
        outcome = await _session(ClientConfig(), prompter, quote_provider)
        assert format_result(outcome.result) == "NVDA 121.25"

    async def test_bad_ticker_is_tool_error(
        self, prompter: ScriptedPrompter, quote_provider: FakeQuoteProvider
    ) -> None:
        outcome = await _session(ClientConfig(ticker="bad.ticker.unknown"), prompter, quote_provider)
        assert outcome.status is SessionStatus.TOOL_ERROR
        assert outcome.exit_code != 0
        assert outcome.error.code == -32000


class TestSubprocess:
    async def test_elicitation_over_real_pipes(self, prompter: ScriptedPrompter) -> None:
        prompter.answers.append("AAPL")
        outcome = await asyncio.wait_for(
            run_client(_spawn("fake_server.py"), ClientConfig(), prompter), 30
        )
        assert outcome.ok
        assert format_result(outcome.result) == "AAPL 189.5"

    async def test_server_exits_after_initialize(self, prompter: ScriptedPrompter) -> None:
        outcome = await asyncio.wait_for(
            run_client(_spawn("init_then_exit.py"), ClientConfig(), prompter), 30
        )
        assert outcome.status is SessionStatus.PEER_DISCONNECTED
        assert outcome.exit_code == 3

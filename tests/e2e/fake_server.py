"""A stockmcp server with canned quotes, spawned by the E2E tests."""

from __future__ import annotations

import asyncio

from stockmcp.config import ServerConfig
from stockmcp.server import run_server
from tests.conftest import FakeQuoteProvider

if __name__ == "__main__":
    asyncio.run(run_server(ServerConfig(), FakeQuoteProvider()))

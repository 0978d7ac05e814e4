"""Answers ``initialize`` and exits, as a crashing server would."""

from __future__ import annotations

import asyncio

from stockmcp.protocol.models import JsonRpcResponse
from stockmcp.protocol.transport import open_stdio_stream


async def main() -> None:
    stream = await open_stdio_stream()
    init = await stream.receive()
    if init is not None:
        await stream.send(JsonRpcResponse.success(getattr(init, "id", None), {"serverInfo": {}}))


if __name__ == "__main__":
    asyncio.run(main())

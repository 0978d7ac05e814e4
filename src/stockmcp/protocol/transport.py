"""Transports — framed message streams over pipes.

:class:`MessageStream` sends and receives whole messages over an
``asyncio`` reader/writer pair.  :class:`StdioTransport` spawns a server
process and hands back a stream wired to its stdin/stdout;
:func:`open_stdio_stream` does the same for the current process's own
stdin/stdout (the server side).
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from typing import TYPE_CHECKING, Any, Callable, Protocol

from stockmcp.protocol import framing
from stockmcp.protocol.errors import ConnectionError, PeerDisconnected

if TYPE_CHECKING:
    from stockmcp.protocol.models import Message

logger = logging.getLogger(__name__)

WireTrace = Callable[[str, "Message"], None]
"""Callback invoked as ``trace("send" | "recv", message)``."""


class ByteWriter(Protocol):
    """The part of :class:`asyncio.StreamWriter` a stream writes through."""

    def write(self, data: bytes) -> None: ...
    async def drain(self) -> None: ...


class MessageStream:
    """One peer's view of a connection: framed messages in, framed messages out.

    Writes are serialized by a lock so a frame's header and body always
    reach the pipe together, even if several tasks send at once.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: ByteWriter,
        *,
        trace: WireTrace | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._trace = trace
        self._write_lock = asyncio.Lock()

    async def send(self, message: Message) -> None:
        """Write one complete frame and wait until it is flushed."""
        frame = framing.encode(message)
        async with self._write_lock:
            try:
                self._writer.write(frame)
                await self._writer.drain()
            except (BrokenPipeError, ConnectionResetError) as exc:
                raise PeerDisconnected(f"write failed: {exc}") from exc
        logger.debug("→ %s", frame)
        if self._trace is not None:
            self._trace("send", message)

    async def receive(self) -> Message | None:
        """Read the next message, or ``None`` once the peer has closed."""
        message = await framing.decode(self._reader)
        if message is not None:
            logger.debug("← %r", message)
            if self._trace is not None:
                self._trace("recv", message)
        return message


class StdioTransport:
    """Runs a server as a child process and talks to it over stdin/stdout.

    The child's stderr is inherited so its logs reach the terminal.
    """

    def __init__(
        self,
        command: str | list[str],
        env: dict[str, str] | None = None,
    ) -> None:
        self._argv = shlex.split(command) if isinstance(command, str) else list(command)
        self._env = env
        self._process: asyncio.subprocess.Process | None = None

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process

    async def connect(self, *, trace: WireTrace | None = None) -> MessageStream:
        """Launch the subprocess and return a stream connected to it."""
        if not self._argv:
            msg = "Server command is empty"
            raise ConnectionError(msg)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except OSError as exc:
            raise ConnectionError(f"Could not start server {self._argv[0]!r}: {exc}") from exc
        logger.debug("Spawned server pid=%s: %s", self._process.pid, self._argv)

        assert self._process.stdin is not None
        assert self._process.stdout is not None
        return MessageStream(self._process.stdout, self._process.stdin, trace=trace)

    async def close(self) -> None:
        """Close stdin, signal TERM, and reap the child.  Safe to call twice."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.stdin is not None:
            process.stdin.close()
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        returncode = await process.wait()
        logger.debug("Server pid=%s exited with %s", process.pid, returncode)


async def open_stdio_stream(
    stdin: Any = None,
    stdout: Any = None,
    *,
    trace: WireTrace | None = None,
) -> MessageStream:
    """Wrap this process's stdin/stdout (binary) in a :class:`MessageStream`."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, stdin or sys.stdin.buffer)

    write_transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, stdout or sys.stdout.buffer
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
    return MessageStream(reader, writer, trace=trace)

"""Length-prefixed message framing.

Each message travels as::

    Content-Length: <byte count>\\r\\n
    \\r\\n
    <UTF-8 JSON body>

:func:`encode` produces one frame; :func:`decode` reads one frame from an
:class:`asyncio.StreamReader`, waiting for as many partial reads as it
takes.  End of stream is reported as ``None`` rather than an exception so
receive loops can wind down quietly.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from stockmcp.protocol.errors import DecodeError, FramingError
from stockmcp.protocol.models import parse_message

if TYPE_CHECKING:
    from stockmcp.protocol.models import Message

logger = logging.getLogger(__name__)

CONTENT_LENGTH = "content-length"


def encode(message: Message | dict[str, Any]) -> bytes:
    """Serialize *message* into a complete frame (header and body)."""
    payload = message if isinstance(message, dict) else message.to_wire()
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


async def read_headers(reader: asyncio.StreamReader) -> dict[str, str] | None:
    """Read header lines up to the blank separator line.

    Returns ``None`` if the stream ends first.  Header names are
    lower-cased.
    """
    headers: dict[str, str] = {}
    while True:
        line = await reader.readline()
        if not line:
            if headers:
                logger.debug("Stream ended inside frame headers: %s", headers)
            return None
        if not line.endswith(b"\n"):
            logger.debug("Stream ended mid header line: %r", line)
            return None

        stripped = line.strip()
        if not stripped:
            return headers

        key, sep, value = stripped.partition(b":")
        if not sep:
            msg = f"malformed header line: {stripped!r}"
            raise FramingError(msg)
        try:
            headers[key.decode("ascii").strip().lower()] = value.decode("ascii").strip()
        except UnicodeDecodeError as exc:
            raise FramingError(f"non-ASCII header line: {stripped!r}") from exc


async def read_body(reader: asyncio.StreamReader) -> bytes | None:
    """Read one raw frame body, or ``None`` on end of stream.

    A zero or absent ``Content-Length`` is treated as end of stream.
    """
    headers = await read_headers(reader)
    if headers is None:
        return None

    raw_length = headers.get(CONTENT_LENGTH)
    if raw_length is None:
        logger.debug("Frame without Content-Length; treating as end of stream")
        return None
    try:
        length = int(raw_length)
    except ValueError as exc:
        raise FramingError(f"invalid Content-Length: {raw_length!r}") from exc
    if length <= 0:
        logger.debug("Frame with Content-Length %d; treating as end of stream", length)
        return None

    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as exc:
        logger.debug("Stream ended after %d of %d body bytes", len(exc.partial), length)
        return None


async def decode(reader: asyncio.StreamReader) -> Message | None:
    """Read and parse the next message.

    Returns ``None`` at end of stream.  Raises :class:`FramingError` for an
    unparseable header and :class:`DecodeError` for a body that is not a
    valid JSON-RPC message.
    """
    body = await read_body(reader)
    if body is None:
        return None
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"invalid JSON body: {exc}") from exc
    return parse_message(payload)

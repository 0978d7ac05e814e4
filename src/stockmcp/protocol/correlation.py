"""Correlator — request ids, outstanding requests, inbound classification.

Each peer owns one :class:`Correlator` per connection.  It issues ids for
outbound requests, remembers which of them still await a response, and
tells a receive loop what an inbound message is relative to that state.
"""

from __future__ import annotations

import itertools
import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any

from stockmcp.protocol.models import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    RequestId,
)

logger = logging.getLogger(__name__)


class Inbound(str, Enum):
    """What an inbound message means to the receiving peer."""

    REPLY = "reply"
    """A response to a request this peer issued and still awaits."""

    STRAY_REPLY = "stray_reply"
    """A response to nothing outstanding (unknown, late, or duplicate)."""

    REQUEST = "request"
    """A request directed at this peer, possibly nested in one of ours."""

    NOTIFICATION = "notification"


@dataclass(frozen=True)
class PendingRequest:
    """An outbound request awaiting its response."""

    id: RequestId
    method: str
    scope: str


class Correlator:
    """Tracks outbound requests for one peer on one connection.

    Usage::

        correlator = Correlator()
        request = correlator.request("tools/list", scope="list")
        await stream.send(request)
        ...
        if correlator.classify(message) is Inbound.REPLY:
            pending = correlator.resolve(message)
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._pending: dict[RequestId, PendingRequest] = {}
        self._abandoned: set[RequestId] = set()

    def next_id(self, scope: str) -> str:
        """Return a fresh id such as ``call-3-9f2c1a``.

        The counter alone guarantees uniqueness on this instance; the
        random suffix keeps ids from separate sessions apart in logs.
        """
        return f"{scope}-{next(self._counter)}-{secrets.token_hex(3)}"

    def request(
        self, method: str, params: dict[str, Any] | None = None, *, scope: str
    ) -> JsonRpcRequest:
        """Build a request with a fresh id and start tracking it."""
        request = JsonRpcRequest(id=self.next_id(scope), method=method, params=params)
        self.track(request, scope=scope)
        return request

    def track(self, request: JsonRpcRequest, *, scope: str = "") -> PendingRequest:
        """Start tracking an already-built request."""
        if request.id in self._pending:
            msg = f"request id already outstanding: {request.id!r}"
            raise ValueError(msg)
        pending = PendingRequest(id=request.id, method=request.method, scope=scope)
        self._pending[request.id] = pending
        return pending

    def classify(self, message: Message) -> Inbound:
        if isinstance(message, JsonRpcRequest):
            return Inbound.REQUEST
        if isinstance(message, JsonRpcNotification):
            return Inbound.NOTIFICATION
        if message.id is not None and message.id in self._pending:
            return Inbound.REPLY
        return Inbound.STRAY_REPLY

    def resolve(self, response: JsonRpcResponse) -> PendingRequest | None:
        """Match *response* to its pending request and stop tracking it.

        Returns ``None`` (and logs) for a response that matches nothing
        outstanding, so a duplicate is never processed twice.
        """
        pending = self._pending.pop(response.id, None) if response.id is not None else None
        if pending is not None:
            return pending
        if response.id in self._abandoned:
            self._abandoned.discard(response.id)
            logger.warning("Ignoring late response for abandoned id %r", response.id)
        else:
            logger.warning("Ignoring response for unknown or settled id %r", response.id)
        return None

    def abandon(self, request_id: RequestId) -> PendingRequest | None:
        """Stop waiting for *request_id*; a later response is treated as stray."""
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            self._abandoned.add(request_id)
        return pending

    def clear(self) -> list[PendingRequest]:
        """Drop every outstanding request (connection teardown)."""
        dropped = list(self._pending.values())
        self._pending.clear()
        self._abandoned.clear()
        if dropped:
            logger.debug("Dropped %d outstanding request(s) at teardown", len(dropped))
        return dropped

    def is_outstanding(self, request_id: RequestId) -> bool:
        return request_id in self._pending

    @property
    def outstanding(self) -> list[PendingRequest]:
        return list(self._pending.values())

    @staticmethod
    def is_reply_to(message: Message, request_id: RequestId) -> bool:
        """True if *message* is a response correlated to *request_id*."""
        return isinstance(message, JsonRpcResponse) and message.id == request_id

"""Tracing for stockmcp sessions.

The session loops open spans through :func:`get_tracer`; until
:func:`configure_telemetry` installs an SDK provider those spans are
no-ops.  ``stockmcp quote`` and ``stockmcp serve`` call it when run with
``--telemetry`` (spans printed to stderr) or ``--otlp-endpoint URL``
(spans shipped to a collector).  Both need the ``otel`` extra.

Span names::

    stockmcp.client.run         one session against a spawned server process
    stockmcp.client.session     one quote lookup, status in ATTR_SESSION_STATUS
    stockmcp.client.nested      a server request answered mid tool call
    stockmcp.server.request     one inbound request and its response
    stockmcp.server.elicit      the nested elicitation/create exchange
    stockmcp.tools.call         the quote tool itself
"""

from __future__ import annotations

import sys
from typing import Any

from opentelemetry import trace

from stockmcp import __version__

ATTR_METHOD = "stockmcp.rpc.method"
ATTR_REQUEST_ID = "stockmcp.rpc.request_id"
ATTR_ERROR_CODE = "stockmcp.rpc.error_code"
ATTR_TOOL_NAME = "stockmcp.tool.name"
ATTR_TICKER = "stockmcp.ticker"
ATTR_ELICITED = "stockmcp.elicited"
ATTR_SESSION_STATUS = "stockmcp.session.status"

_INSTRUMENTATION_NAME = "stockmcp"

_SDK_HINT = "Install it with: pip install 'stockmcp[otel]'"


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or _INSTRUMENTATION_NAME, __version__)


def mark_error(span: trace.Span, code: int, message: str) -> None:
    """Tag *span* with a JSON-RPC error code and an ERROR status."""
    span.set_attribute(ATTR_ERROR_CODE, int(code))
    span.set_status(trace.Status(trace.StatusCode.ERROR, message))


def configure_telemetry(
    service_name: str,
    *,
    console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install a tracer provider exporting to stderr and/or an OTLP collector.

    Console spans go to stderr because the server's stdout is the
    protocol stream.  Raises :class:`ImportError` naming the missing
    package when the ``otel`` extra is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
    except ImportError as exc:
        raise ImportError(f"opentelemetry-sdk is required for tracing. {_SDK_HINT}") from exc

    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name, "service.version": __version__})
    )
    for processor in _span_processors(console, otlp_endpoint):
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)


def _span_processors(console: bool, otlp_endpoint: str | None) -> list[Any]:
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    processors: list[Any] = []
    if console:
        processors.append(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError as exc:
            msg = f"opentelemetry-exporter-otlp is required for --otlp-endpoint. {_SDK_HINT}"
            raise ImportError(msg) from exc
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
    return processors

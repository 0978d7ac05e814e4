"""stockmcp — stock quotes over stdio JSON-RPC with nested elicitation."""

from __future__ import annotations

__version__ = "0.1.0"

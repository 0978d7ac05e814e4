"""Interactive input used to answer a server's elicitation requests."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.prompt import Prompt


@runtime_checkable
class InputPrompter(Protocol):
    """Asks the local user for input a server requested mid tool call."""

    def prompt_for_ticker(self, default_if_blank: str, message: str = "Ticker") -> str: ...
    def prompt_freeform(self, label: str) -> str: ...


class ConsolePrompter:
    """Prompts on the terminal via :mod:`rich.prompt`.

    Closed or redirected stdin reads as a blank answer.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def prompt_for_ticker(self, default_if_blank: str, message: str = "Ticker") -> str:
        return self._ask(message).strip() or default_if_blank

    def prompt_freeform(self, label: str) -> str:
        return self._ask(label)

    def _ask(self, message: str) -> str:
        try:
            return Prompt.ask(message, console=self._console, default="", show_default=False)
        except EOFError:
            self._console.print()
            return ""

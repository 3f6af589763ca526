"""Approver capability — one yes/no decision over a diff.

Anything with ``approve(diff) -> bool`` can gate an update: a console
prompt, a GUI dialog, or an automated policy function.  Only a literal
``True`` counts as approval.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.syntax import Syntax

logger = logging.getLogger(__name__)


class Approver(Protocol):
    def approve(self, diff: str) -> bool: ...


class CallbackApprover:
    """Wraps a decision function."""

    def __init__(self, callback: Callable[[str], bool]) -> None:
        self._callback = callback

    def approve(self, diff: str) -> bool:
        return self._callback(diff) is True


class ConsoleApprover:
    """Shows the diff with Rich and asks the operator to confirm.

    The default answer is no.
    """

    def __init__(self, console: Console | None = None, *, title: str = "Review update") -> None:
        self.console = console or Console()
        self._title = title

    def approve(self, diff: str) -> bool:
        body = Syntax(diff, "diff", word_wrap=True) if diff else "[dim](no changes)[/dim]"
        self.console.print(Panel(body, title=f"[bold]{self._title}[/bold]", border_style="yellow"))
        return Confirm.ask(
            "Trust this content?", default=False, console=self.console
        )

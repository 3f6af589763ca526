"""Audit policy — call sites state explicitly whether review happens."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict, model_validator

if TYPE_CHECKING:
    from rich.console import Console

    from trustfetch.audit.approvers import Approver


class AuditMode(str, Enum):
    SKIP = "skip"  # no review; pending updates stay queued
    INTERACTIVE = "interactive"  # prompt the operator on the console
    CALLBACK = "callback"  # caller-supplied decision function


class AuditPolicy(BaseModel):
    """How pending updates are reviewed.

    ``SKIP`` never approves anything: it leaves the queue untouched so a
    later, reviewed drain can consume it.

    Examples
    --------
    >>> AuditPolicy.require_callback(lambda diff: False).mode
    <AuditMode.CALLBACK: 'callback'>
    """

    model_config = ConfigDict(frozen=True)

    mode: AuditMode
    callback: Callable[[str], bool] | None = None

    @model_validator(mode="after")
    def _callback_matches_mode(self) -> AuditPolicy:
        if self.mode == AuditMode.CALLBACK and self.callback is None:
            raise ValueError("AuditMode.CALLBACK requires a callback")
        if self.mode != AuditMode.CALLBACK and self.callback is not None:
            raise ValueError(f"AuditMode.{self.mode.name} takes no callback")
        return self

    @classmethod
    def skip(cls) -> AuditPolicy:
        return cls(mode=AuditMode.SKIP)

    @classmethod
    def require_interactive(cls) -> AuditPolicy:
        return cls(mode=AuditMode.INTERACTIVE)

    @classmethod
    def require_callback(cls, callback: Callable[[str], bool]) -> AuditPolicy:
        return cls(mode=AuditMode.CALLBACK, callback=callback)

    def approver(self, console: Console | None = None) -> Approver | None:
        """Build the approver for this policy, or None when review is skipped."""
        from trustfetch.audit.approvers import CallbackApprover, ConsoleApprover

        if self.mode == AuditMode.SKIP:
            return None
        if self.mode == AuditMode.INTERACTIVE:
            return ConsoleApprover(console=console)
        assert self.callback is not None
        return CallbackApprover(self.callback)

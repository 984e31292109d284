"""
Handler base — the contract between the dispatcher and remediation code.

A handler is any callable ``handler(ctx, *args)``. It receives a
``HandlerContext`` describing the approved dispatch and returns one of:

    - HandlerResult
    - (success, detail) tuple
    - bool
    - None (treated as success)

In dry-run mode (``ctx.dry_run``) a handler performs detection and
analysis only. State changes go through ``ctx.runner``, which records
them as planned instead of executing them; handlers that mutate state
by other means must check ``ctx.dry_run`` themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from modmon.adapters.shell.command import CommandRunner
from modmon.core.models.config import EffectiveConfig


@dataclass
class HandlerResult:
    """What a handler did, or would have done in dry-run."""

    success: bool
    detail: str = ""
    planned: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, detail: str = "", planned: list[str] | None = None) -> HandlerResult:
        return cls(success=True, detail=detail, planned=list(planned or []))

    @classmethod
    def failed(cls, detail: str, planned: list[str] | None = None) -> HandlerResult:
        return cls(success=False, detail=detail, planned=list(planned or []))

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "detail": self.detail, "planned": self.planned}


@dataclass
class HandlerContext:
    """Everything a handler needs to know about the approved dispatch."""

    action_name: str
    requested_by: str
    cooldown_seconds: int
    config: EffectiveConfig
    runner: CommandRunner
    dry_run: bool = False

    @property
    def planned(self) -> list[str]:
        """Commands held back so far by the dry-run runner."""
        return self.runner.planned


class RemediationHandler(ABC):
    """Base class for registered handlers.

    To create a new handler:
        1. Subclass RemediationHandler
        2. Implement name and run
        3. Register it in the HandlerRegistry
    """

    description: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """The action or variant identifier this handler serves."""

    @abstractmethod
    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        """Perform (or in dry-run, describe) the remediation."""

    def __call__(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        return self.run(ctx, *args)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"

"""
Dispatch outcome — the single result of every dispatch call.

Mirrors the Receipt pattern: the dispatcher never raises for runtime
conditions, it returns one of these and logs it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

OutcomeKind = Literal[
    "executed",
    "skipped_grace_period",
    "skipped_disabled",
    "dry_run_reported",
]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_GRACE_PERIOD = 2


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class DispatchOutcome(BaseModel):
    """What happened to one dispatch request."""

    action_name: str
    requested_by: str
    kind: OutcomeKind
    success: bool = True
    detail: str = ""

    remaining_seconds: int | None = None                    # grace period only
    scope: Literal["global", "selective"] | None = None     # disabled only
    config_key: str | None = None                           # disabled only

    args: list[str] = Field(default_factory=list)
    dry_run: bool = False
    planned: list[str] = Field(default_factory=list)

    timestamp: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def exit_code(self) -> int:
        """0 ran or chose not to, 1 handler failed, 2 held back by cooldown."""
        if self.kind == "skipped_grace_period":
            return EXIT_GRACE_PERIOD
        if not self.success:
            return EXIT_FAILED
        return EXIT_OK

    @property
    def invoked_handler(self) -> bool:
        return self.kind in ("executed", "dry_run_reported")

    @classmethod
    def executed(
        cls,
        action_name: str,
        requested_by: str,
        success: bool,
        detail: str = "",
        **kwargs: Any,
    ) -> DispatchOutcome:
        return cls(
            action_name=action_name,
            requested_by=requested_by,
            kind="executed",
            success=success,
            detail=detail,
            **kwargs,
        )

    @classmethod
    def skipped_grace_period(
        cls,
        action_name: str,
        requested_by: str,
        remaining_seconds: int,
        detail: str = "",
        **kwargs: Any,
    ) -> DispatchOutcome:
        return cls(
            action_name=action_name,
            requested_by=requested_by,
            kind="skipped_grace_period",
            remaining_seconds=remaining_seconds,
            detail=detail,
            **kwargs,
        )

    @classmethod
    def skipped_disabled(
        cls,
        action_name: str,
        requested_by: str,
        scope: Literal["global", "selective"],
        config_key: str,
        detail: str = "",
        **kwargs: Any,
    ) -> DispatchOutcome:
        return cls(
            action_name=action_name,
            requested_by=requested_by,
            kind="skipped_disabled",
            scope=scope,
            config_key=config_key,
            detail=detail,
            **kwargs,
        )

    @classmethod
    def dry_run_reported(
        cls,
        action_name: str,
        requested_by: str,
        success: bool,
        detail: str,
        **kwargs: Any,
    ) -> DispatchOutcome:
        return cls(
            action_name=action_name,
            requested_by=requested_by,
            kind="dry_run_reported",
            success=success,
            detail=detail,
            dry_run=True,
            **kwargs,
        )

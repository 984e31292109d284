"""
Grace period models — the per-action cooldown record and check results.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel


class GraceRecord(BaseModel):
    """Last approved execution of an action, host-wide."""

    action_name: str
    started_at: int                 # unix seconds
    requested_by: str
    cooldown_seconds: int

    @property
    def started_at_iso(self) -> str:
        return datetime.fromtimestamp(self.started_at, UTC).isoformat()

    def age(self, now: float) -> int:
        return int(now) - self.started_at

    def effective_cooldown(self, monitor_interval_seconds: int) -> int:
        """Cooldown padded by one detection cycle."""
        return self.cooldown_seconds + monitor_interval_seconds


class InGracePeriod(BaseModel):
    """The action ran recently; ``remaining_seconds`` until it may run again."""

    kind: Literal["in_grace_period"] = "in_grace_period"
    action_name: str
    remaining_seconds: int
    record: GraceRecord

    @property
    def in_grace(self) -> bool:
        return True


class Expired(BaseModel):
    """No live grace record: the action may run."""

    kind: Literal["expired"] = "expired"
    action_name: str
    record: GraceRecord | None = None
    corrupt: bool = False

    @property
    def in_grace(self) -> bool:
        return False


GraceCheck = InGracePeriod | Expired

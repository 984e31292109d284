"""
Status use case — enablement and live grace records for operators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from modmon.core.config.loader import ConfigResolver
from modmon.core.context import get_monitor_root
from modmon.core.engine.enablement import EnablementPolicy, EnablementState
from modmon.core.models.grace import GraceRecord
from modmon.core.persistence.grace_store import (
    DEFAULT_MONITOR_INTERVAL_SECONDS,
    FileGraceStore,
    GraceStore,
)
from modmon.core.use_cases.engine import grace_dir_for


@dataclass
class GraceEntry:
    """A stored grace record evaluated against the current time."""

    record: GraceRecord
    remaining_seconds: int
    in_grace: bool

    def to_dict(self) -> dict[str, Any]:
        data = self.record.model_dump(mode="json")
        data["started_at_iso"] = self.record.started_at_iso
        data["remaining_seconds"] = self.remaining_seconds
        data["in_grace"] = self.in_grace
        return data


@dataclass
class StatusResult:
    """Aggregated autofix status."""

    root: Path
    grace_dir: Path | None
    monitor_interval: int
    enablement: EnablementState
    records: list[GraceEntry] = field(default_factory=list)
    corrupt: list[str] = field(default_factory=list)

    @property
    def active_count(self) -> int:
        return sum(1 for r in self.records if r.in_grace)

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "grace_dir": str(self.grace_dir) if self.grace_dir else None,
            "monitor_interval": self.monitor_interval,
            "enablement": self.enablement.to_dict(),
            "records": [r.to_dict() for r in self.records],
            "active": self.active_count,
            "corrupt": self.corrupt,
        }


def evaluate_records(store: GraceStore, monitor_interval: int) -> list[GraceEntry]:
    """Each record's remaining time under its own cooldown."""
    now = store.now()
    entries = []
    for record in store.list_records():
        remaining = record.effective_cooldown(monitor_interval) - record.age(now)
        entries.append(GraceEntry(
            record=record,
            remaining_seconds=max(remaining, 0),
            in_grace=remaining > 0,
        ))
    return entries


def get_status(root: Path | None = None, store: GraceStore | None = None) -> StatusResult:
    root = root or get_monitor_root() or Path.cwd()
    config = ConfigResolver(root=root).resolve()
    if store is None:
        store = FileGraceStore(grace_dir_for(config))

    interval = config.get_int("MONITOR_INTERVAL", DEFAULT_MONITOR_INTERVAL_SECONDS)
    return StatusResult(
        root=root,
        grace_dir=store.directory if isinstance(store, FileGraceStore) else None,
        monitor_interval=interval,
        enablement=EnablementPolicy(config).state(),
        records=evaluate_records(store, interval),
        corrupt=store.corrupt_names(),
    )

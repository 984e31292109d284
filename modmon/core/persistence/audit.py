"""
Audit ledger — append-only record of dispatch outcomes.

Every dispatch appends one NDJSON line: who asked for which action,
what the engine decided, and how the handler fared. Entries are never
modified or deleted.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from modmon.core.models.outcome import DispatchOutcome

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = ".state"
DEFAULT_AUDIT_FILE = "autofix-audit.ndjson"


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC)
    short_uuid = uuid.uuid4().hex[:6]
    return f"op-{now.strftime('%Y%m%d-%H%M%S')}-{short_uuid}"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""

    action_name: str = ""
    requested_by: str = ""
    kind: str = ""                 # executed, skipped_grace_period, ...
    success: bool = True
    exit_code: int = 0
    dry_run: bool = False

    detail: str = ""
    remaining_seconds: int | None = None
    scope: str | None = None
    args: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_outcome(
        cls,
        outcome: DispatchOutcome,
        operation_id: str | None = None,
        **context: Any,
    ) -> AuditEntry:
        return cls(
            timestamp=outcome.timestamp,
            operation_id=operation_id or generate_operation_id(),
            action_name=outcome.action_name,
            requested_by=outcome.requested_by,
            kind=outcome.kind,
            success=outcome.success,
            exit_code=outcome.exit_code,
            dry_run=outcome.dry_run,
            detail=outcome.detail,
            remaining_seconds=outcome.remaining_seconds,
            scope=outcome.scope,
            args=list(outcome.args),
            duration_ms=outcome.duration_ms,
            context=context,
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, monitor_root: Path | None = None):
        if path is not None:
            self._path = path
        elif monitor_root is not None:
            self._path = monitor_root / DEFAULT_AUDIT_DIR / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_DIR) / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the ledger. Write errors are logged, not raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.action_name, entry.operation_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def record(self, outcome: DispatchOutcome, **context: Any) -> AuditEntry:
        """Append ``outcome`` and return the written entry."""
        entry = AuditEntry.from_outcome(outcome, **context)
        self.write(entry)
        return entry

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first.

        Corrupt lines are skipped with a warning.
        """
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without loading them all into memory."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0

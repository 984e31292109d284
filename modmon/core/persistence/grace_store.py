"""
Grace period store — host-wide cooldown records for remediation actions.

One record per action name. Any process may read, overwrite or age out
any record: ``start`` is last-writer-wins with no compare-and-swap, so
two checks racing through ``check`` → ``start`` can both run an action
once per cooldown. That window is accepted; the store is a rate
limiter, not a lock.

Backends:
    - FileGraceStore: one human-readable JSON file per action, shared
      by every process on the host.
    - MemoryGraceStore: in-process, for tests and embedding.
"""

from __future__ import annotations

import json
import logging
import tempfile
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from modmon.core.engine.identifiers import is_valid_identifier, validate_identifier
from modmon.core.errors import GraceStoreCorrupt
from modmon.core.models.grace import Expired, GraceCheck, GraceRecord, InGracePeriod

logger = logging.getLogger(__name__)

DEFAULT_GRACE_DIRNAME = "modular-monitor-grace"
GRACE_SUFFIX = ".grace"
DEFAULT_RETENTION_SECONDS = 86400
DEFAULT_MONITOR_INTERVAL_SECONDS = 120


def default_grace_dir() -> Path:
    """``<tmpdir>/modular-monitor-grace``."""
    return Path(tempfile.gettempdir()) / DEFAULT_GRACE_DIRNAME


class GraceStore(ABC):
    """Cooldown bookkeeping shared by every check on the host.

    Subclasses provide raw record storage; the cooldown arithmetic and
    the fail-open policy live here so every backend behaves the same.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # ── Backend primitives ──────────────────────────────────────

    @abstractmethod
    def get(self, action_name: str) -> GraceRecord | None:
        """Stored record for ``action_name``, or None.

        Raises:
            GraceStoreCorrupt: If a record exists but cannot be decoded.
        """

    @abstractmethod
    def _write(self, record: GraceRecord) -> None: ...

    @abstractmethod
    def _delete(self, action_name: str) -> bool: ...

    @abstractmethod
    def _names(self) -> list[str]: ...

    # ── Operations ──────────────────────────────────────────────

    def check(
        self,
        action_name: str,
        cooldown_seconds: int,
        monitor_interval_seconds: int = DEFAULT_MONITOR_INTERVAL_SECONDS,
    ) -> GraceCheck:
        """Whether ``action_name`` is still cooling down.

        The effective cooldown is ``cooldown_seconds + monitor_interval_seconds``
        so an action never re-fires before the next detection cycle could
        observe its effect. A corrupt record counts as expired.
        """
        validate_identifier(action_name, "action")

        try:
            record = self.get(action_name)
        except GraceStoreCorrupt as e:
            logger.warning("%s, treating as expired", e)
            return Expired(action_name=action_name, corrupt=True)
        except OSError as e:
            logger.warning("Grace store unreadable for %s: %s, treating as expired", action_name, e)
            return Expired(action_name=action_name)

        if record is None:
            return Expired(action_name=action_name)

        total = cooldown_seconds + monitor_interval_seconds
        elapsed = self.now() - record.started_at
        if elapsed < total:
            return InGracePeriod(
                action_name=action_name,
                remaining_seconds=total - elapsed,
                record=record,
            )
        return Expired(action_name=action_name, record=record)

    def start(self, action_name: str, cooldown_seconds: int, requested_by: str) -> GraceRecord:
        """Record an approved execution now, replacing any previous record."""
        validate_identifier(action_name, "action")
        validate_identifier(requested_by, "component")

        record = GraceRecord(
            action_name=action_name,
            started_at=self.now(),
            requested_by=requested_by,
            cooldown_seconds=cooldown_seconds,
        )
        self._write(record)
        logger.debug(
            "Grace period started: %s by %s (%ds)", action_name, requested_by, cooldown_seconds
        )
        return record

    def cleanup(self, retention_seconds: int = DEFAULT_RETENTION_SECONDS) -> list[str]:
        """Remove records older than ``retention_seconds`` and corrupt records.

        Returns:
            Names of the removed records.
        """
        now = self.now()
        removed: list[str] = []

        for name in self._names():
            try:
                record = self.get(name)
            except GraceStoreCorrupt as e:
                logger.warning("%s, removing", e)
                if self._delete(name):
                    removed.append(name)
                continue
            if record is not None and now - record.started_at > retention_seconds:
                if self._delete(name):
                    removed.append(name)

        if removed:
            logger.debug("Cleaned up %d stale grace records: %s", len(removed), removed)
        return removed

    def list_records(self) -> list[GraceRecord]:
        """All decodable records, oldest first."""
        records: list[GraceRecord] = []
        for name in self._names():
            try:
                record = self.get(name)
            except GraceStoreCorrupt as e:
                logger.warning("Skipping %s", e)
                continue
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.started_at)

    def corrupt_names(self) -> list[str]:
        """Names whose records exist but cannot be decoded."""
        corrupt: list[str] = []
        for name in self._names():
            try:
                self.get(name)
            except GraceStoreCorrupt:
                corrupt.append(name)
        return corrupt

    def clear(self, action_name: str | None = None) -> int:
        """Delete one record, or every record when ``action_name`` is None."""
        if action_name is not None:
            validate_identifier(action_name, "action")
            return 1 if self._delete(action_name) else 0
        return sum(1 for name in self._names() if self._delete(name))


class FileGraceStore(GraceStore):
    """Grace records as ``<directory>/<action>.grace`` JSON files.

    Files are written atomically (temp file + rename) so a reader never
    sees half a record. The directory is created on first write.
    """

    def __init__(self, directory: Path | None = None, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._directory = directory or default_grace_dir()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, action_name: str) -> Path:
        """Record path for a validated action name."""
        validate_identifier(action_name, "action")
        return self._directory / f"{action_name}{GRACE_SUFFIX}"

    def get(self, action_name: str) -> GraceRecord | None:
        path = self.path_for(action_name)
        try:
            if not path.is_file():
                return None
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise GraceStoreCorrupt(path, str(e)) from e

        if raw.lstrip().startswith("{"):
            try:
                record = GraceRecord.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as e:
                raise GraceStoreCorrupt(path, str(e)) from e
        else:
            record = _parse_legacy_record(action_name, raw, path)

        if record.action_name != action_name:
            raise GraceStoreCorrupt(
                path, f"record names action {record.action_name!r}, expected {action_name!r}"
            )
        return record

    def _write(self, record: GraceRecord) -> None:
        path = self.path_for(record.action_name)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = record.model_dump(mode="json")
        data["started_at_iso"] = record.started_at_iso
        content = json.dumps(data, indent=2) + "\n"

        _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".grace_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    def _delete(self, action_name: str) -> bool:
        path = self.path_for(action_name)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def _names(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(
            p.stem
            for p in self._directory.glob(f"*{GRACE_SUFFIX}")
            if p.is_file() and is_valid_identifier(p.stem)
        )


def _parse_legacy_record(action_name: str, raw: str, path: Path) -> GraceRecord:
    """Decode the older ``timestamp|component|cooldown`` one-line format."""
    parts = raw.strip().split("|")
    if len(parts) != 3:
        raise GraceStoreCorrupt(path, f"unrecognized record format: {raw.strip()!r}")
    started_at, requested_by, cooldown = parts
    try:
        return GraceRecord(
            action_name=action_name,
            started_at=int(started_at),
            requested_by=requested_by,
            cooldown_seconds=int(cooldown),
        )
    except (ValueError, ValidationError) as e:
        raise GraceStoreCorrupt(path, str(e)) from e


class MemoryGraceStore(GraceStore):
    """In-process grace store. Not shared between processes."""

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._records: dict[str, GraceRecord] = {}

    def get(self, action_name: str) -> GraceRecord | None:
        validate_identifier(action_name, "action")
        return self._records.get(action_name)

    def _write(self, record: GraceRecord) -> None:
        self._records[record.action_name] = record

    def _delete(self, action_name: str) -> bool:
        return self._records.pop(action_name, None) is not None

    def _names(self) -> list[str]:
        return sorted(self._records)

"""
Tests for grace period bookkeeping — both backends share the same contract.
"""

import json
import logging
from pathlib import Path

import pytest

from modmon.core.errors import GraceStoreCorrupt, InvalidIdentifier
from modmon.core.models.grace import Expired, GraceRecord, InGracePeriod
from modmon.core.persistence.grace_store import FileGraceStore, MemoryGraceStore


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path: Path, clock):
    if request.param == "memory":
        return MemoryGraceStore(clock=clock)
    return FileGraceStore(tmp_path / "grace", clock=clock)


@pytest.fixture
def file_store(tmp_path: Path, clock) -> FileGraceStore:
    return FileGraceStore(tmp_path / "grace", clock=clock)


# ── Cooldown arithmetic ──────────────────────────────────────────────


class TestGraceCheck:
    def test_no_record_is_expired(self, store):
        result = store.check("disk-cleanup", 300, 120)
        assert isinstance(result, Expired)
        assert not result.in_grace
        assert result.record is None

    def test_interval_padded_window(self, store, clock):
        clock.now = 1000
        store.start("emergency-process-kill", 300, "thermal")

        clock.now = 1419
        result = store.check("emergency-process-kill", 300, 120)
        assert isinstance(result, InGracePeriod)
        assert result.remaining_seconds == 1
        assert result.record.requested_by == "thermal"

        clock.now = 1421
        assert isinstance(store.check("emergency-process-kill", 300, 120), Expired)

    def test_window_boundary_is_exclusive(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 300, "disk")
        clock.now = 1420
        assert not store.check("disk-cleanup", 300, 120).in_grace

    def test_in_grace_throughout_window(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 300, "disk")
        for t in range(1000, 1420, 7):
            clock.now = t
            result = store.check("disk-cleanup", 300, 120)
            assert result.in_grace
            assert result.remaining_seconds == 1420 - t

    def test_cooldown_comes_from_caller(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 3600, "disk")
        clock.now = 1100
        assert not store.check("disk-cleanup", 0, 60).in_grace
        assert store.check("disk-cleanup", 600, 60).in_grace

    def test_default_monitor_interval(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 0, "disk")
        clock.now = 1119
        assert store.check("disk-cleanup", 0).in_grace
        clock.now = 1120
        assert not store.check("disk-cleanup", 0).in_grace

    def test_records_are_per_action(self, store, clock):
        store.start("disk-cleanup", 300, "disk")
        assert not store.check("memory-cleanup", 300, 120).in_grace

    def test_start_overwrites(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 300, "disk")
        clock.now = 1500
        record = store.start("disk-cleanup", 60, "thermal")

        assert store.get("disk-cleanup") == record
        assert record.started_at == 1500
        assert record.requested_by == "thermal"


# ── Identifier hygiene ───────────────────────────────────────────────


class TestIdentifiers:
    @pytest.mark.parametrize("name", ["../etc/passwd", "a/b", "", "disk cleanup", "x;rm", ".hidden"])
    def test_invalid_action_names_rejected(self, store, name):
        with pytest.raises(InvalidIdentifier):
            store.check(name, 300, 120)
        with pytest.raises(InvalidIdentifier):
            store.start(name, 300, "disk")

    def test_invalid_requester_rejected(self, store):
        with pytest.raises(InvalidIdentifier):
            store.start("disk-cleanup", 300, "../disk")

    def test_traversal_writes_nothing(self, file_store, tmp_path: Path):
        with pytest.raises(InvalidIdentifier):
            file_store.start("../escape", 300, "disk")
        assert not (tmp_path / "escape.grace").exists()
        assert not file_store.directory.exists()


# ── File backend ─────────────────────────────────────────────────────


class TestFileGraceStore:
    def test_record_file_is_readable_json(self, file_store, clock):
        clock.now = 1000
        file_store.start("disk-cleanup", 300, "disk")

        data = json.loads(file_store.path_for("disk-cleanup").read_text())
        assert data["action_name"] == "disk-cleanup"
        assert data["started_at"] == 1000
        assert data["requested_by"] == "disk"
        assert data["cooldown_seconds"] == 300
        assert data["started_at_iso"].startswith("1970-01-01T00:16:40")

    def test_no_temp_files_left(self, file_store):
        file_store.start("disk-cleanup", 300, "disk")
        names = [p.name for p in file_store.directory.iterdir()]
        assert names == ["disk-cleanup.grace"]

    def test_shared_between_instances(self, tmp_path: Path, clock):
        writer = FileGraceStore(tmp_path / "grace", clock=clock)
        reader = FileGraceStore(tmp_path / "grace", clock=clock)
        writer.start("disk-cleanup", 300, "disk")
        assert reader.check("disk-cleanup", 300, 120).in_grace

    def test_legacy_pipe_format(self, file_store, clock):
        file_store.directory.mkdir(parents=True)
        file_store.path_for("memory-cleanup").write_text("1000|memory|180\n")

        record = file_store.get("memory-cleanup")
        assert record == GraceRecord(
            action_name="memory-cleanup", started_at=1000, requested_by="memory", cooldown_seconds=180
        )
        clock.now = 1100
        assert file_store.check("memory-cleanup", 180, 120).remaining_seconds == 200

    @pytest.mark.parametrize("content", [
        "",
        "garbage",
        "{not json",
        '{"action_name": "disk-cleanup"}',
        "abc|disk|300",
        '{"action_name": "other", "started_at": 1, "requested_by": "x", "cooldown_seconds": 1}',
    ])
    def test_corrupt_record_raises_on_get(self, file_store, content):
        file_store.directory.mkdir(parents=True)
        file_store.path_for("disk-cleanup").write_text(content)
        with pytest.raises(GraceStoreCorrupt):
            file_store.get("disk-cleanup")

    def test_corrupt_record_fails_open(self, file_store, caplog):
        file_store.directory.mkdir(parents=True)
        file_store.path_for("disk-cleanup").write_text("garbage")

        with caplog.at_level(logging.WARNING):
            result = file_store.check("disk-cleanup", 300, 120)

        assert isinstance(result, Expired)
        assert result.corrupt
        assert "Corrupt grace record" in caplog.text

    def test_overlong_name_fails_open(self, file_store, caplog):
        name = "a" * 300
        with pytest.raises(GraceStoreCorrupt):
            file_store.get(name)

        with caplog.at_level(logging.WARNING):
            result = file_store.check(name, 300, 120)
        assert isinstance(result, Expired)
        assert result.corrupt

    def test_backend_os_error_fails_open(self, clock, caplog):
        class UnreadableStore(MemoryGraceStore):
            def get(self, action_name):
                raise PermissionError(13, "Permission denied")

        with caplog.at_level(logging.WARNING):
            result = UnreadableStore(clock=clock).check("disk-cleanup", 300, 120)
        assert isinstance(result, Expired)
        assert not result.corrupt
        assert "Grace store unreadable for disk-cleanup" in caplog.text

    def test_start_replaces_corrupt_record(self, file_store):
        file_store.directory.mkdir(parents=True)
        file_store.path_for("disk-cleanup").write_text("garbage")
        file_store.start("disk-cleanup", 300, "disk")
        assert file_store.check("disk-cleanup", 300, 120).in_grace

    def test_unrelated_files_ignored(self, file_store):
        file_store.directory.mkdir(parents=True)
        (file_store.directory / "notes.txt").write_text("hello")
        (file_store.directory / "bad name.grace").write_text("1|x|1")
        assert file_store.list_records() == []
        assert file_store.corrupt_names() == []


# ── Maintenance ──────────────────────────────────────────────────────


class TestCleanup:
    def test_removes_only_stale_records(self, store, clock):
        clock.now = 1000
        store.start("old-action", 300, "disk")
        clock.now = 1000 + 86400
        store.start("fresh-action", 300, "disk")
        clock.now = 1000 + 86401

        removed = store.cleanup(86400)

        assert removed == ["old-action"]
        assert store.get("old-action") is None
        assert store.get("fresh-action") is not None

    def test_record_at_retention_boundary_kept(self, store, clock):
        clock.now = 1000
        store.start("disk-cleanup", 300, "disk")
        clock.now = 1000 + 86400
        assert store.cleanup(86400) == []

    def test_removes_corrupt_records(self, file_store):
        file_store.directory.mkdir(parents=True)
        file_store.path_for("broken").write_text("garbage")
        file_store.start("disk-cleanup", 300, "disk")

        assert file_store.cleanup(86400) == ["broken"]
        assert not file_store.path_for("broken").exists()

    def test_missing_directory(self, tmp_path: Path):
        assert FileGraceStore(tmp_path / "absent").cleanup() == []


class TestListAndClear:
    def test_list_records_oldest_first(self, store, clock):
        clock.now = 2000
        store.start("b-action", 60, "disk")
        clock.now = 1000
        store.start("a-action", 60, "disk")
        assert [r.action_name for r in store.list_records()] == ["a-action", "b-action"]

    def test_clear_one(self, store):
        store.start("disk-cleanup", 60, "disk")
        store.start("memory-cleanup", 60, "memory")
        assert store.clear("disk-cleanup") == 1
        assert store.clear("disk-cleanup") == 0
        assert [r.action_name for r in store.list_records()] == ["memory-cleanup"]

    def test_clear_all(self, store):
        store.start("disk-cleanup", 60, "disk")
        store.start("memory-cleanup", 60, "memory")
        assert store.clear() == 2
        assert store.list_records() == []

    def test_clear_rejects_invalid_name(self, store):
        with pytest.raises(InvalidIdentifier):
            store.clear("../x")


class TestGraceRecord:
    def test_age_and_effective_cooldown(self):
        record = GraceRecord(action_name="a", started_at=1000, requested_by="b", cooldown_seconds=300)
        assert record.age(1250.9) == 250
        assert record.effective_cooldown(120) == 420

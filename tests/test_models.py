"""
Tests for dispatch outcomes and grace check models.
"""

from modmon.core.models.grace import Expired, GraceRecord, InGracePeriod
from modmon.core.models.outcome import EXIT_FAILED, EXIT_GRACE_PERIOD, EXIT_OK, DispatchOutcome


class TestDispatchOutcome:
    def test_executed_success(self):
        outcome = DispatchOutcome.executed("a", "b", success=True, detail="done")
        assert outcome.kind == "executed"
        assert outcome.exit_code == EXIT_OK
        assert outcome.invoked_handler

    def test_executed_failure(self):
        outcome = DispatchOutcome.executed("a", "b", success=False)
        assert outcome.exit_code == EXIT_FAILED

    def test_grace_period(self):
        outcome = DispatchOutcome.skipped_grace_period("a", "b", remaining_seconds=10)
        assert outcome.exit_code == EXIT_GRACE_PERIOD
        assert outcome.remaining_seconds == 10
        assert not outcome.invoked_handler

    def test_disabled_is_not_a_failure(self):
        outcome = DispatchOutcome.skipped_disabled(
            "a", "b", scope="global", config_key="AUTOFIX", detail="off"
        )
        assert outcome.exit_code == EXIT_OK
        assert outcome.success
        assert not outcome.invoked_handler

    def test_dry_run_reported(self):
        outcome = DispatchOutcome.dry_run_reported("a", "b", success=True, detail="would", planned=["x"])
        assert outcome.dry_run
        assert outcome.exit_code == EXIT_OK
        assert outcome.planned == ["x"]

    def test_dry_run_failure_exit_code(self):
        outcome = DispatchOutcome.dry_run_reported("a", "b", success=False, detail="cannot")
        assert outcome.exit_code == EXIT_FAILED

    def test_json_dump(self):
        data = DispatchOutcome.executed("a", "b", success=True, args=["1"]).model_dump(mode="json")
        assert data["kind"] == "executed"
        assert data["args"] == ["1"]
        assert data["timestamp"]


class TestGraceChecks:
    def test_discriminators(self):
        record = GraceRecord(action_name="a", started_at=0, requested_by="b", cooldown_seconds=1)
        assert InGracePeriod(action_name="a", remaining_seconds=1, record=record).in_grace
        assert not Expired(action_name="a").in_grace
        assert Expired(action_name="a").kind == "expired"

    def test_started_at_iso(self):
        record = GraceRecord(action_name="a", started_at=0, requested_by="b", cooldown_seconds=1)
        assert record.started_at_iso == "1970-01-01T00:00:00+00:00"

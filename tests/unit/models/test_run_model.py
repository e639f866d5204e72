"""Tests for scrollspine.models.run - Run lifecycle and run-state pointer."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from scrollspine.models.run import CleanupResult, Run, RunState, RunStats, RunStatus

T0 = datetime(2026, 1, 1, tzinfo=UTC)


class TestRunLifecycle:
    def test_new_run_is_active(self):
        run = Run(started_at=T0)

        assert run.status == RunStatus.ACTIVE
        assert not run.is_complete
        assert run.duration_seconds is None

    def test_complete_records_counts(self):
        run = Run(started_at=T0).complete(RunStats(items_found=40, items_extracted=38), at=T0 + timedelta(seconds=30))

        assert run.is_success
        assert run.items_found == 40
        assert run.items_extracted == 38
        assert run.duration_seconds == 30

    def test_fail_records_reason(self):
        run = Run(started_at=T0).fail("final flush failed", at=T0 + timedelta(seconds=5))

        assert run.is_failure
        assert run.is_complete
        assert run.error == "final flush failed"

    def test_transitions_return_copies(self):
        run = Run(started_at=T0)
        run.complete(RunStats())

        assert run.status == RunStatus.ACTIVE

    def test_unique_ids(self):
        assert Run().id != Run().id

    def test_dict_round_trip(self):
        run = Run(id="r1", started_at=T0).complete(RunStats(items_found=2, items_extracted=2), at=T0)

        assert Run.from_dict(run.to_dict()) == run


class TestRunState:
    def test_empty_state(self):
        state = RunState()

        assert state.current_run_id is None
        assert state.last_successful_run_id is None

    def test_promoted_moves_both_pointers(self):
        state = RunState().promoted("r1", at=T0).promoted("r2", at=T0 + timedelta(minutes=15))

        assert state.current_run_id == "r2"
        assert state.last_successful_run_id == "r2"
        assert state.updated_at == T0 + timedelta(minutes=15)


class TestCleanupResult:
    def test_empty(self):
        assert CleanupResult().is_empty
        assert not CleanupResult(runs_deleted=1).is_empty

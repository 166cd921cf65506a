"""Tests for TeardownOperation model."""

from __future__ import annotations

from datetime import datetime

import pytest

from src.models.teardown_operation import OperationMode, OperationStatus, TeardownOperation, TeardownState


def make_operation(**kwargs) -> TeardownOperation:
    values = dict(
        operation_id="op_123",
        project_tag="demo",
        region="eu-west-3",
        timestamp=datetime(2025, 11, 11, 15, 30),
        mode=OperationMode.EXECUTE,
        status=OperationStatus.EXECUTING,
    )
    values.update(kwargs)
    return TeardownOperation(**values)


class TestTeardownOperation:
    """Test suite for TeardownOperation model."""

    def test_defaults(self) -> None:
        operation = make_operation()

        assert operation.final_state == TeardownState.NORMAL_DESTROY
        assert operation.transitions == []
        assert operation.resolved_by is None
        assert operation.errors == []

    def test_record_transition_updates_final_state(self) -> None:
        operation = make_operation()

        operation.record_transition(TeardownState.NORMAL_DESTROY, TeardownState.STATE_RECOVERY_ATTEMPT)
        operation.record_transition(TeardownState.STATE_RECOVERY_ATTEMPT, TeardownState.NORMAL_DESTROY)

        assert operation.final_state == TeardownState.NORMAL_DESTROY
        assert operation.transitions == [
            ("normal_destroy", "state_recovery_attempt"),
            ("state_recovery_attempt", "normal_destroy"),
        ]

    def test_finish_computes_duration(self) -> None:
        operation = make_operation(started_at=datetime(2025, 11, 11, 15, 30, 0))

        operation.finish(datetime(2025, 11, 11, 15, 32, 30))

        assert operation.duration_seconds == 150.0
        assert operation.validate()

    def test_validate_counts_must_sum(self) -> None:
        operation = make_operation(total_resources=3, succeeded_count=1, failed_count=1)

        with pytest.raises(ValueError, match="Resource counts don't match total"):
            operation.validate()

    def test_validate_completion_after_start(self) -> None:
        operation = make_operation(
            started_at=datetime(2025, 11, 11, 16, 0),
            completed_at=datetime(2025, 11, 11, 15, 0),
        )

        with pytest.raises(ValueError, match="Completion time before start time"):
            operation.validate()

    def test_validate_dry_run_must_be_planned(self) -> None:
        operation = make_operation(mode=OperationMode.DRY_RUN)

        with pytest.raises(ValueError, match="Dry-run mode must have planned status"):
            operation.validate()

    def test_enum_values(self) -> None:
        assert OperationMode("dry-run") == OperationMode.DRY_RUN
        assert OperationStatus("partial") == OperationStatus.PARTIAL
        assert TeardownState("manual_tag_based_cleanup") == TeardownState.MANUAL_TAG_BASED_CLEANUP

"""Teardown operation model.

Represents one run of the teardown workflow: how it moved through the
fallback states and what the tag-based cleanup (if reached) managed to delete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class TeardownState(Enum):
    """States of the teardown-with-fallback machine."""

    NORMAL_DESTROY = "normal_destroy"
    STATE_RECOVERY_ATTEMPT = "state_recovery_attempt"
    MANUAL_TAG_BASED_CLEANUP = "manual_tag_based_cleanup"
    DONE = "done"


class OperationMode(Enum):
    """Operation execution mode."""

    DRY_RUN = "dry-run"
    EXECUTE = "execute"


class OperationStatus(Enum):
    """Operation execution status with state transitions."""

    PLANNED = "planned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class TeardownOperation:
    """Teardown operation entity.

    State transitions of ``status``:
        planned → executing → completed (terraform destroy or every deletion succeeded)
        planned → executing → partial (tag-based cleanup with some failed deletions)
        planned → executing → failed (nothing could be deleted, or fallback disabled)

    Attributes:
        operation_id: Unique identifier for the operation
        project_tag: Project tag whose resources are being torn down
        region: AWS region
        timestamp: When the operation was initiated (UTC)
        mode: dry-run or execute
        status: Current execution status
        final_state: Teardown state the machine stopped in
        transitions: (from_state, to_state) pairs in order
        resolved_by: State that removed the infrastructure (normal_destroy or manual_tag_based_cleanup)
        total_resources: Resources handled by tag-based cleanup
        succeeded_count: Deleted successfully
        failed_count: Failed to delete
        skipped_count: Skipped (unsupported type or dry run)
        aws_profile: AWS profile used (optional)
        started_at: When execution started
        completed_at: When execution finished
        duration_seconds: Total duration
        errors: Human-readable failures collected along the way
    """

    operation_id: str
    project_tag: str
    region: str
    timestamp: datetime
    mode: OperationMode
    status: OperationStatus
    final_state: TeardownState = TeardownState.NORMAL_DESTROY
    transitions: list[tuple[str, str]] = field(default_factory=list)
    resolved_by: Optional[str] = None
    total_resources: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    aws_profile: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    errors: list[str] = field(default_factory=list)

    def record_transition(self, from_state: TeardownState, to_state: TeardownState) -> None:
        self.transitions.append((from_state.value, to_state.value))
        self.final_state = to_state

    def finish(self, completed_at: datetime) -> None:
        """Stamp completion time and duration."""
        self.completed_at = completed_at
        if self.started_at:
            self.duration_seconds = (completed_at - self.started_at).total_seconds()

    def validate(self) -> bool:
        """Validate operation invariants.

        Validation rules:
            - succeeded_count + failed_count + skipped_count == total_resources
            - completed_at must be after started_at
            - dry-run mode must have planned status

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.succeeded_count + self.failed_count + self.skipped_count != self.total_resources:
            raise ValueError("Resource counts don't match total")

        if self.completed_at and self.started_at:
            if self.completed_at < self.started_at:
                raise ValueError("Completion time before start time")

        if self.mode == OperationMode.DRY_RUN and self.status != OperationStatus.PLANNED:
            raise ValueError("Dry-run mode must have planned status")

        return True

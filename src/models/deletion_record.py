"""Deletion record model.

Individual resource deletion attempt with result and metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class DeletionStatus(Enum):
    """Individual resource deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeletionRecord:
    """Deletion record entity.

    Represents an individual resource deletion attempt during tag-based cleanup.
    Each record belongs to a TeardownOperation.

    Validation rules:
        - status=succeeded: no error_code or skip_reason
        - status=failed: requires error_code
        - status=skipped: requires skip_reason
        - resource_arn, when present, must start with "arn:aws"

    Attributes:
        record_id: Unique identifier for this record
        operation_id: Parent operation identifier
        resource_id: Resource identifier (ID, name)
        resource_type: AWS resource type (e.g. AWS::EC2::VPC)
        region: AWS region
        timestamp: When deletion was attempted (UTC)
        status: Deletion outcome (succeeded, failed, skipped)
        resource_arn: Resource ARN (optional)
        error_code: AWS error code if failed (optional)
        error_message: Human-readable error if failed (optional)
        skip_reason: Why the resource was skipped (optional)
        deletion_order: Position in the computed deletion order (optional)
        tags: Resource tags at deletion time (optional)
    """

    record_id: str
    operation_id: str
    resource_id: str
    resource_type: str
    region: str
    timestamp: datetime
    status: DeletionStatus
    resource_arn: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    skip_reason: Optional[str] = None
    deletion_order: Optional[int] = None
    tags: Optional[dict] = field(default=None)

    def validate(self) -> bool:
        """Validate record invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        # Status-specific validation
        if self.status == DeletionStatus.FAILED:
            if not self.error_code:
                raise ValueError("Failed status requires error_code")
        elif self.status == DeletionStatus.SKIPPED:
            if not self.skip_reason:
                raise ValueError("Skipped status requires skip_reason")
        elif self.status == DeletionStatus.SUCCEEDED:
            if self.error_code or self.skip_reason:
                raise ValueError("Succeeded status cannot have error or skip reason")

        # ARN format validation (aws, aws-cn, aws-us-gov partitions)
        if self.resource_arn and not self.resource_arn.startswith("arn:aws"):
            raise ValueError("Invalid ARN format")

        return True

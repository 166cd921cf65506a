"""Tag-based resource cleaner.

Deletes every resource carrying the project tag, independent of Terraform
state. Best effort: a failed deletion is logged and recorded, and the cleaner
moves on to the next resource.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from ..models.deletion_record import DeletionRecord, DeletionStatus
from ..models.tagged_resource import TaggedResource
from ..utils.clock import utcnow
from .deleter import ResourceDeleter
from .dependency import order_resources
from .discovery import ResourceDiscovery

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """Outcome of a tag-based cleanup.

    Attributes:
        operation_id: Operation the records belong to
        resources: Resources in the order they were (or would be) deleted
        records: One record per resource
        dry_run: True if nothing was deleted
    """

    operation_id: str
    resources: list[TaggedResource] = field(default_factory=list)
    records: list[DeletionRecord] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SKIPPED)

    @property
    def failures(self) -> list[DeletionRecord]:
        return [r for r in self.records if r.status == DeletionStatus.FAILED]


class TagBasedCleaner:
    """Discovers resources by tag and deletes them in dependency order.

    Attributes:
        discovery: Finds tagged resources (anything with ``discover()``)
        deleter: Deletes one resource (anything with ``supports()`` and ``delete_resource()``)
    """

    def __init__(self, discovery: ResourceDiscovery, deleter: ResourceDeleter) -> None:
        self.discovery = discovery
        self.deleter = deleter

    def plan(self) -> list[TaggedResource]:
        """Discover tagged resources and return them in deletion order."""
        return order_resources(self.discovery.discover())

    def preview(self, operation_id: Optional[str] = None) -> CleanupReport:
        """List what would be deleted without calling any delete API."""
        operation_id = operation_id or f"op_{uuid.uuid4()}"
        report = CleanupReport(operation_id=operation_id, dry_run=True)

        for position, resource in enumerate(self.plan(), start=1):
            report.resources.append(resource)
            report.records.append(
                self._record(operation_id, resource, position, DeletionStatus.SKIPPED, skip_reason="Dry run")
            )

        return report

    def execute(self, operation_id: Optional[str] = None) -> CleanupReport:
        """Delete every tagged resource, continuing past failures.

        Args:
            operation_id: Operation to attach records to (generated if omitted)

        Returns:
            CleanupReport with one record per resource
        """
        operation_id = operation_id or f"op_{uuid.uuid4()}"
        report = CleanupReport(operation_id=operation_id)

        ordered = self.plan()
        if not ordered:
            logger.info("No tagged resources found")
            return report

        logger.info(f"Deleting {len(ordered)} tagged resource(s)")

        for position, resource in enumerate(ordered, start=1):
            report.resources.append(resource)

            if not self.deleter.supports(resource.resource_type):
                logger.warning(f"Skipping {resource.resource_type} {resource.resource_id}: unsupported type")
                report.records.append(
                    self._record(
                        operation_id,
                        resource,
                        position,
                        DeletionStatus.SKIPPED,
                        skip_reason=f"Unsupported resource type: {resource.resource_type}",
                    )
                )
                continue

            success, error = self.deleter.delete_resource(resource)

            if success:
                report.records.append(self._record(operation_id, resource, position, DeletionStatus.SUCCEEDED))
            else:
                logger.warning(f"Failed to delete {resource.resource_type} {resource.resource_id}: {error}")
                report.records.append(
                    self._record(
                        operation_id,
                        resource,
                        position,
                        DeletionStatus.FAILED,
                        error_code=_error_code(error),
                        error_message=error or "Resource deletion failed",
                    )
                )

        logger.info(
            f"Cleanup finished: {report.succeeded_count} deleted, "
            f"{report.failed_count} failed, {report.skipped_count} skipped"
        )
        return report

    def _record(
        self,
        operation_id: str,
        resource: TaggedResource,
        position: int,
        status: DeletionStatus,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        skip_reason: Optional[str] = None,
    ) -> DeletionRecord:
        return DeletionRecord(
            record_id=f"rec_{uuid.uuid4()}",
            operation_id=operation_id,
            resource_id=resource.resource_id,
            resource_type=resource.resource_type,
            region=resource.region,
            timestamp=utcnow(),
            status=status,
            resource_arn=resource.arn,
            error_code=error_code,
            error_message=error_message,
            skip_reason=skip_reason,
            deletion_order=position,
            tags=resource.tags or None,
        )


def _error_code(error: Optional[str]) -> str:
    """Pull the leading error code out of a deleter error message."""
    if not error or ":" not in error:
        return "DeletionFailed"
    code = error.split(":", 1)[0].strip()
    if not code or " " in code:
        return "DeletionFailed"
    return code

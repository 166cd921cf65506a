"""Audit storage for teardown operations.

Stores and retrieves audit logs in YAML format so a teardown can be checked
for leaked resources after the fact.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from ..models.deletion_record import DeletionRecord
from ..models.teardown_operation import TeardownOperation
from ..utils.clock import utcnow


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value else None


class AuditStorage:
    """Audit log storage and retrieval.

    Stores teardown audit logs as YAML files organized by year/month.

    Storage structure:
        ~/.tflm/audit-logs/
            2025/
                11/
                    operation-op_123.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.tflm/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".tflm" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_operation(self, operation: TeardownOperation, records: list[DeletionRecord]) -> Path:
        """Write the operation and its deletion records to a YAML file.

        Overwrites an existing log with the same operation ID.

        Returns:
            Path of the written audit file
        """
        year_month_dir = self.storage_dir / str(operation.timestamp.year) / f"{operation.timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "teardown",
                "created_at": _iso(utcnow()),
            },
            "operation": {
                "operation_id": operation.operation_id,
                "project_tag": operation.project_tag,
                "region": operation.region,
                "timestamp": _iso(operation.timestamp),
                "aws_profile": operation.aws_profile,
                "mode": operation.mode.value,
                "status": operation.status.value,
                "final_state": operation.final_state.value,
                "resolved_by": operation.resolved_by,
                "transitions": [list(t) for t in operation.transitions],
                "total_resources": operation.total_resources,
                "succeeded_count": operation.succeeded_count,
                "failed_count": operation.failed_count,
                "skipped_count": operation.skipped_count,
                "started_at": _iso(operation.started_at),
                "completed_at": _iso(operation.completed_at),
                "duration_seconds": operation.duration_seconds,
                "errors": list(operation.errors),
            },
            "records": [
                {
                    "record_id": record.record_id,
                    "resource_id": record.resource_id,
                    "resource_type": record.resource_type,
                    "resource_arn": record.resource_arn,
                    "region": record.region,
                    "timestamp": _iso(record.timestamp),
                    "status": record.status.value,
                    "error_code": record.error_code,
                    "error_message": record.error_message,
                    "skip_reason": record.skip_reason,
                    "deletion_order": record.deletion_order,
                    "tags": record.tags,
                }
                for record in records
            ],
        }

        audit_file = year_month_dir / f"operation-{operation.operation_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)
        return audit_file

    def get_operation(self, operation_id: str) -> Optional[dict]:
        """Retrieve operation audit log by ID.

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/operation-{operation_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)
        return None

    def query_operations(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query operations within date range.

        Args:
            since: Start date (inclusive), None for all
            until: End date (inclusive), None for all

        Returns:
            Audit logs in chronological directory order
        """
        results = []

        for year_dir in sorted(self.storage_dir.glob("*")):
            if not year_dir.is_dir():
                continue

            for month_dir in sorted(year_dir.glob("*")):
                if not month_dir.is_dir():
                    continue

                for audit_file in sorted(month_dir.glob("operation-*.yaml")):
                    with open(audit_file, "r") as f:
                        audit_data = yaml.safe_load(f)

                    timestamp = datetime.fromisoformat(audit_data["operation"]["timestamp"].rstrip("Z"))

                    if since and timestamp < since:
                        continue
                    if until and timestamp > until:
                        continue

                    results.append(audit_data)

        return results

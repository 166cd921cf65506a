"""Teardown with fallback.

State machine:

    NORMAL_DESTROY ──ok──────────────────────────────▶ DONE
          │ fail
          ▼
    STATE_RECOVERY_ATTEMPT ──ok──▶ NORMAL_DESTROY (retry)
          │ fail
          ▼
    MANUAL_TAG_BASED_CLEANUP ──always────────────────▶ DONE

Recovery is attempted at most ``max_recovery_attempts`` times, after which a
failed destroy goes straight to tag-based cleanup, so the machine always
reaches DONE. Tag-based cleanup failures are recorded on the operation and
never raised.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import LifecycleError, TerraformError, ToolNotFoundError
from ..models.deletion_record import DeletionRecord
from ..models.teardown_operation import OperationMode, OperationStatus, TeardownOperation, TeardownState
from ..utils.clock import utcnow
from .audit import AuditStorage
from .cleaner import CleanupReport, TagBasedCleaner
from .local import LocalArtifactCleaner

logger = logging.getLogger(__name__)


class ConvergenceEngine(Protocol):
    """What the workflow needs from Terraform (TerraformRunner satisfies it)."""

    def destroy(self, check: bool = False) -> Any: ...

    def init(
        self,
        backend_config: Optional[dict[str, str]] = None,
        reconfigure: bool = True,
        upgrade: bool = False,
        check: bool = True,
    ) -> Any: ...

    def refresh(self, check: bool = False) -> Any: ...


class TeardownWorkflow:
    """Destroys the stack through Terraform, falling back to tag-based cleanup.

    Attributes:
        engine: Convergence engine (TerraformRunner or a fake)
        cleaner: Tag-based cleaner used when Terraform cannot destroy
        state_manager: Backs up state before recovery (optional)
        audit_storage: Receives the operation log (optional)
        local_cleaner: Removes local artifacts after a completed teardown (optional)
        backend_config: Backend values for re-initialising during recovery
        max_recovery_attempts: Recovery attempts before giving up on Terraform
        fallback_enabled: When False, tag-based cleanup is skipped and the run fails
    """

    def __init__(
        self,
        engine: ConvergenceEngine,
        cleaner: TagBasedCleaner,
        project_tag: str,
        region: str,
        aws_profile: Optional[str] = None,
        state_manager: Any = None,
        audit_storage: Optional[AuditStorage] = None,
        local_cleaner: Optional[LocalArtifactCleaner] = None,
        backend_config: Optional[dict[str, str]] = None,
        max_recovery_attempts: int = 1,
        fallback_enabled: bool = True,
    ) -> None:
        self.engine = engine
        self.cleaner = cleaner
        self.project_tag = project_tag
        self.region = region
        self.aws_profile = aws_profile
        self.state_manager = state_manager
        self.audit_storage = audit_storage
        self.local_cleaner = local_cleaner
        self.backend_config = backend_config
        self.max_recovery_attempts = max_recovery_attempts
        self.fallback_enabled = fallback_enabled

        self.recovery_attempts = 0
        self.report: Optional[CleanupReport] = None

        self._handlers: dict[TeardownState, Callable[[TeardownOperation], TeardownState]] = {
            TeardownState.NORMAL_DESTROY: self._handle_normal_destroy,
            TeardownState.STATE_RECOVERY_ATTEMPT: self._handle_state_recovery,
            TeardownState.MANUAL_TAG_BASED_CLEANUP: self._handle_tag_cleanup,
        }

    def run(self, start_state: TeardownState = TeardownState.NORMAL_DESTROY) -> TeardownOperation:
        """Drive the state machine from ``start_state`` to DONE.

        Args:
            start_state: NORMAL_DESTROY, or MANUAL_TAG_BASED_CLEANUP to skip Terraform

        Returns:
            TeardownOperation describing the run
        """
        operation = self._new_operation(OperationMode.EXECUTE)
        operation.status = OperationStatus.EXECUTING
        operation.started_at = utcnow()
        operation.final_state = start_state

        self.recovery_attempts = 0
        self.report = None

        state = start_state
        while state != TeardownState.DONE:
            next_state = self._handlers[state](operation)
            logger.debug(f"Teardown: {state.value} -> {next_state.value}")
            operation.record_transition(state, next_state)
            state = next_state

        operation.status = self._final_status(operation)
        operation.finish(utcnow())

        if self.local_cleaner is not None and operation.status == OperationStatus.COMPLETED:
            self.local_cleaner.clean()

        self._audit(operation)
        return operation

    def preview(self) -> TeardownOperation:
        """Dry run: list what tag-based cleanup would delete."""
        operation = self._new_operation(OperationMode.DRY_RUN)
        self.report = self.cleaner.preview(operation.operation_id)
        operation.record_transition(TeardownState.MANUAL_TAG_BASED_CLEANUP, TeardownState.DONE)
        self._apply_report(operation, self.report)
        return operation

    def _new_operation(self, mode: OperationMode) -> TeardownOperation:
        return TeardownOperation(
            operation_id=f"op_{uuid.uuid4()}",
            project_tag=self.project_tag,
            region=self.region,
            timestamp=utcnow(),
            mode=mode,
            status=OperationStatus.PLANNED,
            aws_profile=self.aws_profile,
        )

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _handle_normal_destroy(self, operation: TeardownOperation) -> TeardownState:
        logger.info("Running terraform destroy...")
        try:
            ok = self.engine.destroy().ok
        except (TerraformError, ToolNotFoundError) as e:
            logger.error(f"terraform destroy could not run: {e}")
            operation.errors.append(str(e))
            ok = False

        if ok:
            logger.info("terraform destroy completed")
            operation.resolved_by = TeardownState.NORMAL_DESTROY.value
            return TeardownState.DONE

        operation.errors.append("terraform destroy failed")
        if self.recovery_attempts < self.max_recovery_attempts:
            logger.warning("terraform destroy failed, attempting state recovery")
            return TeardownState.STATE_RECOVERY_ATTEMPT

        logger.warning("terraform destroy failed, falling back to tag-based cleanup")
        return TeardownState.MANUAL_TAG_BASED_CLEANUP

    def _handle_state_recovery(self, operation: TeardownOperation) -> TeardownState:
        self.recovery_attempts += 1
        logger.info(f"Recovering Terraform state (attempt {self.recovery_attempts}/{self.max_recovery_attempts})")

        if self.state_manager is not None:
            try:
                self.state_manager.backup()
            except OSError as e:
                logger.warning(f"State backup failed, continuing recovery: {e}")

        try:
            if not self.engine.init(backend_config=self.backend_config, reconfigure=True, check=False).ok:
                operation.errors.append("terraform init failed during state recovery")
                return TeardownState.MANUAL_TAG_BASED_CLEANUP

            if not self.engine.refresh(check=False).ok:
                operation.errors.append("terraform refresh failed during state recovery")
                return TeardownState.MANUAL_TAG_BASED_CLEANUP
        except (TerraformError, ToolNotFoundError) as e:
            operation.errors.append(str(e))
            return TeardownState.MANUAL_TAG_BASED_CLEANUP

        logger.info("State recovered, retrying terraform destroy")
        return TeardownState.NORMAL_DESTROY

    def _handle_tag_cleanup(self, operation: TeardownOperation) -> TeardownState:
        if not self.fallback_enabled:
            logger.warning("Tag-based cleanup disabled; resources may remain")
            operation.errors.append("tag-based cleanup disabled")
            return TeardownState.DONE

        logger.info(f"Cleaning up resources tagged Project={self.project_tag} in {self.region}")
        try:
            self.report = self.cleaner.execute(operation.operation_id)
        except (ClientError, BotoCoreError, LifecycleError) as e:
            logger.error(f"Tag-based cleanup aborted: {e}")
            operation.errors.append(f"tag-based cleanup aborted: {e}")
            return TeardownState.DONE

        operation.resolved_by = TeardownState.MANUAL_TAG_BASED_CLEANUP.value
        self._apply_report(operation, self.report)
        return TeardownState.DONE

    # ------------------------------------------------------------------

    def _apply_report(self, operation: TeardownOperation, report: CleanupReport) -> None:
        operation.total_resources = report.total
        operation.succeeded_count = report.succeeded_count
        operation.failed_count = report.failed_count
        operation.skipped_count = report.skipped_count
        for record in report.failures:
            operation.errors.append(f"{record.resource_type} {record.resource_id}: {record.error_message}")

    def _final_status(self, operation: TeardownOperation) -> OperationStatus:
        if operation.resolved_by is None:
            return OperationStatus.FAILED
        if operation.failed_count == 0:
            return OperationStatus.COMPLETED
        if operation.succeeded_count > 0:
            return OperationStatus.PARTIAL
        return OperationStatus.FAILED

    def _audit(self, operation: TeardownOperation) -> None:
        if self.audit_storage is None:
            return
        records: list[DeletionRecord] = self.report.records if self.report else []
        try:
            path = self.audit_storage.log_operation(operation, records)
            logger.debug(f"Audit log written to {path}")
        except OSError as e:
            logger.warning(f"Could not write audit log: {e}")

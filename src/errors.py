"""Exception hierarchy for lifecycle operations."""

from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for all lifecycle manager errors."""


class PreconditionError(LifecycleError):
    """A required tool, credential, or directory is missing."""


class ToolNotFoundError(PreconditionError):
    """An external CLI (terraform) is not installed or not on PATH."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"{tool} is not installed or not on PATH")


class RetryExhaustedError(LifecycleError):
    """A retryable step kept failing after every allowed attempt."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        message = f"Failed to {description} after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class TerraformError(LifecycleError):
    """Terraform exited non-zero."""

    def __init__(self, result: Any) -> None:
        self.result = result
        detail = (result.stderr or result.stdout or "").strip().splitlines()
        tail = detail[-1] if detail else f"exit code {result.returncode}"
        super().__init__(f"terraform {result.command} failed: {tail}")


class BucketError(LifecycleError):
    """Remote-state bucket operation failed."""


class StateFileError(LifecycleError):
    """Local Terraform state file is missing or unusable."""

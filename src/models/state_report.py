"""Terraform state inspection results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass
class StateValidation:
    """Outcome of validating the local state file.

    Attributes:
        valid: True when the file exists, is large enough and refreshes cleanly
        reason: Why the state is invalid (None when valid)
        size_bytes: File size, 0 when missing
        path: State file path
    """

    valid: bool
    reason: Optional[str] = None
    size_bytes: int = 0
    path: Optional[Path] = None


@dataclass
class StateInfo:
    """Summary of the local state file.

    Attributes:
        exists: Whether the state file exists
        path: State file path
        size_bytes: File size in bytes
        modified_at: Last modification time
        resources: Addresses reported by ``terraform state list``
    """

    exists: bool
    path: Path
    size_bytes: int = 0
    modified_at: Optional[datetime] = None
    resources: list[str] = field(default_factory=list)

    @property
    def resource_count(self) -> int:
        return len(self.resources)

    @property
    def human_size(self) -> str:
        return human_size(self.size_bytes)


def human_size(size_bytes: int) -> str:
    """Format a byte count as B, KB, MB or GB."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"

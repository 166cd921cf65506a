"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (audit logs append the "Z" themselves)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

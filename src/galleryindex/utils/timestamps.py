"""Timestamp helpers shared by the store and the scanner."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def from_epoch(seconds: float) -> str:
    """Convert a POSIX timestamp to an ISO-8601 UTC string."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()

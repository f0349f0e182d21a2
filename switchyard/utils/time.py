"""Time utilities for Switchyard."""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC time (timezone-aware).

    Returns:
        Current UTC datetime
    """
    return datetime.now(UTC)


def epoch_ms() -> int:
    """Current wall-clock time in integer milliseconds (queue scheduling scores)."""
    return int(time.time() * 1000)


def from_epoch_ms(value: int | float | None) -> str | None:
    """Convert epoch milliseconds to an ISO string (UTC), passing None through."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC).isoformat()

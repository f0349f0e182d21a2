"""Type definitions using TypedDict for internal data structures."""

from typing import Any, NotRequired, TypedDict


class BackoffData(TypedDict):
    """Serialized BackoffPolicy."""

    max_attempts: int
    delay_ms: int
    multiplier: float


# Queue adapter data format
class ItemStorageData(TypedDict):
    """Type definition for item data stored in queue adapters."""

    item_id: str
    name: str
    priority: str
    payload: Any
    status: str
    attempts_made: int
    backoff: BackoffData
    created_at: str
    updated_at: str
    # Epoch milliseconds when the item becomes claimable (insertion or reschedule)
    eligible_at: int
    # Times the item was recovered from a worker that stopped renewing its lease
    stalled_count: NotRequired[int]
    # Terminal bookkeeping
    result: NotRequired[Any]
    last_error: NotRequired[dict[str, Any] | None]
    finished_at: NotRequired[str | None]


class QueueCounts(TypedDict):
    """Per-status item counts for one queue."""

    waiting: int
    delayed: int
    active: int
    completed: int
    failed: int


class StalledRecovery(TypedDict):
    """Ids moved by one stalled-item recovery pass."""

    requeued: list[str]
    failed: list[str]

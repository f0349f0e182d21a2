"""Common type definitions for Switchyard."""

from enum import Enum


class Priority(str, Enum):
    """Priority class of an item; selects which queue holds it."""

    HIGH = "high"
    LOW = "low"

    def __str__(self) -> str:
        return self.value


class ItemStatus(str, Enum):
    """Item status inside a queue."""

    WAITING = "waiting"  # Eligible, not yet claimed
    DELAYED = "delayed"  # Rescheduled after a failure, waiting for backoff
    ACTIVE = "active"  # Claimed by a worker
    COMPLETED = "completed"  # Acked
    FAILED = "failed"  # Attempts exhausted

    def __str__(self) -> str:
        return self.value

    def is_terminal(self) -> bool:
        """Check if the item will not be offered to a worker again."""
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)

    def is_pending(self) -> bool:
        """Check if the item counts towards queue depth."""
        return self in (ItemStatus.WAITING, ItemStatus.DELAYED)

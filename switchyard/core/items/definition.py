"""Item definition class."""

import uuid
from typing import Any

from switchyard.core.common.types import ItemStatus, Priority
from switchyard.type_defs import ItemStorageData
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import epoch_ms, utc_now


class Item:
    """One unit of submitted work.

    The id is generated at construction so a completion can be registered
    for it before the item is visible to any worker.
    """

    def __init__(
        self,
        payload: Any,
        priority: Priority | str,
        name: str | None = None,
        backoff: BackoffPolicy | None = None,
        item_id: str | None = None,
    ) -> None:
        """
        Initialize item.

        Args:
            payload: Opaque JSON-serializable payload forwarded downstream
            priority: Priority class (HIGH/LOW)
            name: Job name shown in monitoring (defaults to "<priority>-priority-webhook")
            backoff: Retry policy (default: 3 attempts, 2000 ms exponential)
            item_id: Explicit id (generated if None)
        """
        self.priority = Priority(priority)
        self.payload = payload
        self.name = name or f"{self.priority.value}-priority-webhook"
        self.backoff = backoff or BackoffPolicy()
        self.item_id = item_id or uuid.uuid4().hex
        self.attempts_made = 0
        self.created_at = utc_now()

    def to_dict(self) -> ItemStorageData:
        """
        Convert to dictionary for storage.

        Returns:
            Dictionary representation in WAITING status
        """
        now = self.created_at.isoformat()
        return {
            "item_id": self.item_id,
            "name": self.name,
            "priority": self.priority.value,
            "payload": self.payload,
            "status": ItemStatus.WAITING.value,
            "attempts_made": self.attempts_made,
            "backoff": self.backoff.to_dict(),  # type: ignore[typeddict-item]
            "created_at": now,
            "updated_at": now,
            "eligible_at": epoch_ms(),
        }

    def __repr__(self) -> str:
        return f"Item(item_id={self.item_id!r}, name={self.name!r}, priority={self.priority})"

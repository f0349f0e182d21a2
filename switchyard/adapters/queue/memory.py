"""In-memory queue adapter for testing and single-process runs."""

import heapq
import threading
import time
from collections import deque
from typing import TYPE_CHECKING, Any

from switchyard.adapters.base import QueueAdapter
from switchyard.core.common.exceptions import ItemNotFoundError
from switchyard.core.common.types import ItemStatus
from switchyard.type_defs import ItemStorageData, QueueCounts
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import epoch_ms, utc_now

if TYPE_CHECKING:
    from switchyard.core.items.definition import Item


class InMemoryQueueAdapter(QueueAdapter):
    """
    In-memory queue adapter (for testing and local runs).

    Layout:
    - ``_ready``: FIFO of eligible item ids
    - ``_delayed``: heap of (eligible_at_ms, sequence, item_id) for retries
    - ``_items``: item data by id, any status

    A single ``threading.Condition`` guards all three; ``claim`` waits on it
    and is woken by ``enqueue`` and by ``fail`` when a retry is scheduled.
    Nothing survives a restart.
    """

    def __init__(
        self,
        name: str = "queue",
        keep_completed: int = 100,
        keep_failed: int = 50,
    ) -> None:
        """
        Initialize in-memory queue.

        Args:
            name: Queue name (for logs and monitoring)
            keep_completed: Completed items retained for monitoring
            keep_failed: Failed items retained for monitoring
        """
        super().__init__(name)
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed

        self._items: dict[str, dict[str, Any]] = {}
        self._ready: deque[str] = deque()
        self._delayed: list[tuple[int, int, str]] = []
        self._sequence = 0
        self._completed_ids: deque[str] = deque()
        self._failed_ids: deque[str] = deque()
        self._cond = threading.Condition()

    def enqueue(self, item: "Item") -> str:
        """Add an item to the tail of the queue."""
        data = dict(item.to_dict())
        item_id = data["item_id"]
        with self._cond:
            if item_id in self._items:
                raise ValueError(f"Item {item_id} already exists")
            self._items[item_id] = data
            # Retries that became due earlier stay ahead of this item
            self._promote_due()
            self._ready.append(item_id)
            self._cond.notify()
        return item_id

    def depth(self) -> int:
        """Count waiting plus delayed items."""
        with self._cond:
            return len(self._ready) + len(self._delayed)

    def claim(self, timeout_seconds: float = 1.0) -> ItemStorageData | None:
        """Claim the next eligible item, blocking up to ``timeout_seconds``."""
        deadline = time.monotonic() + max(0.0, timeout_seconds)
        with self._cond:
            while True:
                self._promote_due()

                if self._ready:
                    item_id = self._ready.popleft()
                    item = self._items[item_id]
                    item["status"] = ItemStatus.ACTIVE.value
                    item["updated_at"] = utc_now().isoformat()
                    return dict(item)  # type: ignore[return-value]

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None

                wait = remaining
                if self._delayed:
                    until_due = (self._delayed[0][0] - epoch_ms()) / 1000
                    wait = min(wait, max(until_due, 0.001))
                self._cond.wait(timeout=wait)

    def ack(self, item_id: str, result: Any = None) -> None:
        """Mark item completed."""
        with self._cond:
            item = self._require(item_id)
            now = utc_now().isoformat()
            item["attempts_made"] = int(item.get("attempts_made", 0)) + 1
            item["status"] = ItemStatus.COMPLETED.value
            item["result"] = result
            item["finished_at"] = now
            item["updated_at"] = now
            self._retain(item_id, self._completed_ids, self.keep_completed)

    def fail(self, item_id: str, error: dict[str, Any] | None = None) -> bool:
        """Record a failed attempt; reschedule with backoff or mark failed."""
        with self._cond:
            item = self._require(item_id)
            now = utc_now().isoformat()
            attempts_made = int(item.get("attempts_made", 0)) + 1
            backoff = BackoffPolicy.from_dict(item.get("backoff"))

            item["attempts_made"] = attempts_made
            item["last_error"] = error
            item["updated_at"] = now

            if backoff.should_retry(attempts_made):
                eligible_at = epoch_ms() + backoff.delay_for(attempts_made)
                item["status"] = ItemStatus.DELAYED.value
                item["eligible_at"] = eligible_at
                heapq.heappush(self._delayed, (eligible_at, self._next_sequence(), item_id))
                self._cond.notify_all()
                return True

            item["status"] = ItemStatus.FAILED.value
            item["finished_at"] = now
            self._retain(item_id, self._failed_ids, self.keep_failed)
            return False

    def get_item(self, item_id: str) -> ItemStorageData | None:
        """Get an item."""
        with self._cond:
            item = self._items.get(item_id)
            return dict(item) if item is not None else None  # type: ignore[return-value]

    def get_counts(self) -> QueueCounts:
        """Count items per status."""
        counts = {status.value: 0 for status in ItemStatus}
        with self._cond:
            for item in self._items.values():
                counts[item["status"]] = counts.get(item["status"], 0) + 1
        return counts  # type: ignore[return-value]

    def list_items(self, status: str | None = None, limit: int = 20) -> list[ItemStorageData]:
        """List items, most recently updated first."""
        with self._cond:
            items = [dict(i) for i in self._items.values()]

        if status:
            items = [i for i in items if i.get("status") == status]

        items.sort(key=lambda i: i.get("updated_at", ""), reverse=True)
        return items[:limit]  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Internal helpers (caller holds self._cond)
    # ------------------------------------------------------------------

    def _require(self, item_id: str) -> dict[str, Any]:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id, self.name)
        return item

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _promote_due(self) -> None:
        """Move delayed items whose backoff has elapsed to the ready tail."""
        now = epoch_ms()
        while self._delayed and self._delayed[0][0] <= now:
            _eligible_at, _sequence, item_id = heapq.heappop(self._delayed)
            item = self._items.get(item_id)
            if item is None or item["status"] != ItemStatus.DELAYED.value:
                continue
            item["status"] = ItemStatus.WAITING.value
            self._ready.append(item_id)

    def _retain(self, item_id: str, bucket: deque[str], keep: int) -> None:
        """Track a terminal item and evict the oldest beyond ``keep``."""
        bucket.append(item_id)
        while len(bucket) > max(keep, 0):
            evicted = bucket.popleft()
            self._items.pop(evicted, None)

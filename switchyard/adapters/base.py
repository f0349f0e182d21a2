"""Abstract base classes for adapters."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from switchyard.type_defs import ItemStorageData, QueueCounts, StalledRecovery

if TYPE_CHECKING:
    from switchyard.core.items.definition import Item


class QueueAdapter(ABC):
    """Durable queue adapter abstract class.

    One instance holds the items of one priority class. Instances are shared
    between the submission path, the workers and the rebalancer, so every
    method must be safe to call from multiple threads.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def enqueue(self, item: "Item") -> str:
        """
        Add an item to the tail of the queue.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Queue adapter developer                      │
        │ WHO CALLS:      Dispatcher (submission path)                 │
        │ WHEN CALLED:    After the completion is registered           │
        └──────────────────────────────────────────────────────────────┘

        Args:
            item: Item to store (``item.to_dict()`` gives the stored form)

        Returns:
            The item id

        Raises:
            ValueError: If the item id already exists
        """
        pass

    @abstractmethod
    def depth(self) -> int:
        """
        Count items that are not yet claimed.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Queue adapter developer                      │
        │ WHO CALLS:      Rebalancer (HIGH queue only), monitoring     │
        │ WHEN CALLED:    Every rebalance tick                         │
        ├──────────────────────────────────────────────────────────────┤
        │ Counts WAITING and DELAYED items. ACTIVE (in-flight) and     │
        │ terminal items are NOT counted.                              │
        └──────────────────────────────────────────────────────────────┘

        Returns:
            Number of waiting plus delayed items
        """
        pass

    @abstractmethod
    def claim(self, timeout_seconds: float = 1.0) -> ItemStorageData | None:
        """
        Claim the next eligible item for processing.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Queue adapter developer                      │
        │ WHO CALLS:      Worker loop                                  │
        │ WHEN CALLED:    Whenever the worker is idle and not draining │
        ├──────────────────────────────────────────────────────────────┤
        │ ORDERING: items are offered in the order they became         │
        │ eligible. A delayed item becomes eligible at its eligible_at │
        │ time and joins the tail at that moment.                      │
        │ ATOMICITY: one item is handed to exactly one claimant.       │
        └──────────────────────────────────────────────────────────────┘

        Args:
            timeout_seconds: Maximum time to block waiting for an item

        Returns:
            Claimed item data (status ACTIVE), or None on timeout
        """
        pass

    @abstractmethod
    def ack(self, item_id: str, result: Any = None) -> None:
        """
        Mark a claimed item permanently done.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Queue adapter developer                      │
        │ WHO CALLS:      Worker after a successful outcome            │
        └──────────────────────────────────────────────────────────────┘

        Args:
            item_id: Claimed item id
            result: Result to record on the item (for monitoring)

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        pass

    @abstractmethod
    def fail(self, item_id: str, error: dict[str, Any] | None = None) -> bool:
        """
        Record a failed attempt for a claimed item.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Queue adapter developer                      │
        │ WHO CALLS:      Worker after a failed outcome                │
        ├──────────────────────────────────────────────────────────────┤
        │ 1. attempts_made += 1                                        │
        │ 2. If the item's backoff policy allows another attempt:      │
        │      status = DELAYED,                                       │
        │      eligible_at = now + backoff.delay_for(attempts_made)    │
        │      return True                                             │
        │ 3. Otherwise status = FAILED, return False                   │
        └──────────────────────────────────────────────────────────────┘

        Args:
            item_id: Claimed item id
            error: Failure details to record on the item

        Returns:
            True if the item was rescheduled, False if attempts are exhausted

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        pass

    @abstractmethod
    def get_item(self, item_id: str) -> ItemStorageData | None:
        """
        Get an item by id (any status).

        Args:
            item_id: Item id

        Returns:
            Item data if found, None otherwise
        """
        pass

    @abstractmethod
    def get_counts(self) -> QueueCounts:
        """
        Count items per status.

        Returns:
            Mapping of status name to count
        """
        pass

    @abstractmethod
    def list_items(self, status: str | None = None, limit: int = 20) -> list[ItemStorageData]:
        """
        List items for monitoring, most recently updated first.

        Args:
            status: Optional status filter
            limit: Maximum number of items

        Returns:
            List of item data
        """
        pass

    def recover_stalled(self) -> StalledRecovery:
        """
        Return items claimed by a process that died back into circulation.

        ┌──────────────────────────────────────────────────────────────┐
        │                   IMPLEMENTATION CONTRACT                     │
        ├──────────────────────────────────────────────────────────────┤
        │ WHO IMPLEMENTS: Durable queue adapters                       │
        │ WHO CALLS:      Dispatcher (on start, then periodically)     │
        ├──────────────────────────────────────────────────────────────┤
        │ An ACTIVE item whose claimer stopped renewing its lease goes │
        │ back to WAITING, or to FAILED once it has stalled more than  │
        │ the adapter's allowed count. Items still held by live        │
        │ workers in this process are never moved.                     │
        └──────────────────────────────────────────────────────────────┘

        The default does nothing: adapters whose items die with the
        process have nothing to recover.

        Returns:
            Ids requeued and ids failed
        """
        return {"requeued": [], "failed": []}

    def ping(self) -> bool:
        """Check that the storage substrate is reachable."""
        return True

    def close(self) -> None:
        """Release adapter resources."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

"""Redis-based durable queue adapter."""

import json
import threading
import time
from typing import TYPE_CHECKING, Any

from switchyard.adapters.base import QueueAdapter
from switchyard.core.common.exceptions import ItemNotFoundError, QueueConnectionError
from switchyard.core.common.types import ItemStatus
from switchyard.type_defs import ItemStorageData, QueueCounts, StalledRecovery
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import epoch_ms, utc_now

if TYPE_CHECKING:
    from switchyard.core.items.definition import Item

# Move due retries from the delayed set to the wait list, oldest first.
# Shared prologue of the enqueue and claim scripts.
_LUA_PROMOTE = """
    local due = redis.call('zrangebyscore', KEYS[2], '-inf', ARGV[1])
    for _, id in ipairs(due) do
        redis.call('zrem', KEYS[2], id)
        redis.call('rpush', KEYS[1], id)
    end
"""

# KEYS: wait, delayed   ARGV: now_ms, item_id
LUA_ENQUEUE_SCRIPT = (
    _LUA_PROMOTE
    + """
    return redis.call('rpush', KEYS[1], ARGV[2])
"""
)

# KEYS: wait, delayed, active   ARGV: now_ms
LUA_CLAIM_SCRIPT = (
    _LUA_PROMOTE
    + """
    local id = redis.call('lpop', KEYS[1])
    if not id then
        return false
    end
    redis.call('rpush', KEYS[3], id)
    return id
"""
)

# Requeue or fail claimed ids whose lease expired. An active id without a
# lease (claimer died between BLMOVE and recording the lease) gets a fresh one.
# KEYS: active, leases, wait, stalled, failed   ARGV: now_ms, lease_ms, max_stalled_count
LUA_RECOVER_SCRIPT = """
    local now = tonumber(ARGV[1])
    local requeued, failed = {}, {}
    for _, id in ipairs(redis.call('lrange', KEYS[1], 0, -1)) do
        local expires = redis.call('zscore', KEYS[2], id)
        if not expires then
            redis.call('zadd', KEYS[2], now + tonumber(ARGV[2]), id)
        elseif tonumber(expires) <= now then
            redis.call('lrem', KEYS[1], 0, id)
            redis.call('zrem', KEYS[2], id)
            local count = redis.call('hincrby', KEYS[4], id, 1)
            if count > tonumber(ARGV[3]) then
                redis.call('hdel', KEYS[4], id)
                redis.call('rpush', KEYS[5], id)
                table.insert(failed, id)
            else
                redis.call('lpush', KEYS[3], id)
                table.insert(requeued, id)
            end
        end
    end
    return {requeued, failed}
"""


class RedisQueueAdapter(QueueAdapter):
    """
    Redis-based durable queue with delayed retries.

    Schema:
        # Item data
        Hash: "{prefix}{name}:item:{item_id}" -> {data: json}

        # Lifecycle structures
        List:       "{prefix}{name}:wait"       eligible ids, FIFO (RPUSH / LPOP)
        Sorted Set: "{prefix}{name}:delayed"    id -> eligible_at (epoch ms)
        List:       "{prefix}{name}:active"     claimed ids
        List:       "{prefix}{name}:completed"  retained terminal ids (oldest first)
        List:       "{prefix}{name}:failed"     retained terminal ids (oldest first)
        Sorted Set: "{prefix}{name}:leases"     claimed id -> lease expiry (epoch ms)
        Hash:       "{prefix}{name}:stalled"    id -> times recovered from a dead claimer

    Claiming runs a Lua script that promotes due retries and pops the head of
    the wait list in one step, so each item goes to exactly one worker. When
    nothing is eligible the adapter blocks on the wait list with BLMOVE,
    bounded by the next retry's due time.

    Every claim records a lease. ``recover_stalled`` first renews the leases
    of items this instance still holds, then moves ids whose lease expired
    (their process died mid-item) back to the head of the wait list, or to
    the failed list once they have stalled more than ``max_stalled_count``
    times. Run it at an interval shorter than ``lease_seconds``.

    Status in the stored JSON is refreshed on claim/ack/fail/recovery; a
    promoted retry still reads ``delayed`` there until it is claimed.
    ``get_counts`` reads the lifecycle structures and is always accurate.

    Example:
        >>> import redis
        >>> client = redis.Redis(host='localhost', port=6379, decode_responses=True)
        >>> high = RedisQueueAdapter(client, name="HighPriorityQueue")
        >>> high.enqueue(Item({"a": 1}, Priority.HIGH))
    """

    def __init__(
        self,
        redis_client: Any,
        name: str,
        key_prefix: str = "switchyard:",
        keep_completed: int = 100,
        keep_failed: int = 50,
        lease_seconds: float = 60.0,
        max_stalled_count: int = 1,
    ) -> None:
        """
        Initialize Redis queue adapter.

        Args:
            redis_client: Redis client instance with decode_responses=True
            name: Queue name, part of every key
            key_prefix: Prefix for all Redis keys (default: "switchyard:")
            keep_completed: Completed items retained for monitoring
            keep_failed: Failed items retained for monitoring
            lease_seconds: How long a claim survives without renewal
            max_stalled_count: Recoveries allowed before a stalled item fails

        Raises:
            ValueError: If lease_seconds is not positive or max_stalled_count is negative
        """
        if lease_seconds <= 0:
            raise ValueError("lease_seconds must be > 0")
        if max_stalled_count < 0:
            raise ValueError("max_stalled_count must be >= 0")

        super().__init__(name)
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.lease_ms = int(lease_seconds * 1000)
        self.max_stalled_count = max_stalled_count

        # Ids claimed through this instance and not yet acked or failed
        self._held: set[str] = set()
        self._held_lock = threading.Lock()

        self._enqueue_script = self.redis.register_script(LUA_ENQUEUE_SCRIPT)
        self._claim_script = self.redis.register_script(LUA_CLAIM_SCRIPT)
        self._recover_script = self.redis.register_script(LUA_RECOVER_SCRIPT)

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    def _key(self, suffix: str) -> str:
        return f"{self.key_prefix}{self.name}:{suffix}"

    def _make_item_key(self, item_id: str) -> str:
        """Generate Redis key for item data."""
        return self._key(f"item:{item_id}")

    @property
    def wait_key(self) -> str:
        return self._key("wait")

    @property
    def delayed_key(self) -> str:
        return self._key("delayed")

    @property
    def active_key(self) -> str:
        return self._key("active")

    @property
    def completed_key(self) -> str:
        return self._key("completed")

    @property
    def failed_key(self) -> str:
        return self._key("failed")

    @property
    def leases_key(self) -> str:
        return self._key("leases")

    @property
    def stalled_key(self) -> str:
        return self._key("stalled")

    def _serialize(self, item_data: dict[str, Any]) -> str:
        """Serialize item data to JSON string."""
        return json.dumps(item_data)

    def _deserialize(self, data: str) -> dict[str, Any]:
        """Deserialize JSON string to item data."""
        return json.loads(data)

    # ------------------------------------------------------------------
    # QueueAdapter
    # ------------------------------------------------------------------

    def enqueue(self, item: "Item") -> str:
        """
        Store item data and append its id to the wait list.

        Raises:
            ValueError: If the item already exists
        """
        data = dict(item.to_dict())
        item_id = data["item_id"]

        # Atomic check-and-set (returns 1 if created, 0 if exists)
        created = self.redis.hsetnx(self._make_item_key(item_id), "data", self._serialize(data))
        if not created:
            raise ValueError(f"Item {item_id} already exists")

        self._enqueue_script(keys=[self.wait_key, self.delayed_key], args=[epoch_ms(), item_id])
        return item_id

    def depth(self) -> int:
        """Count waiting plus delayed items (LLEN + ZCARD)."""
        pipe = self.redis.pipeline()
        pipe.llen(self.wait_key)
        pipe.zcard(self.delayed_key)
        waiting, delayed = pipe.execute()
        return int(waiting) + int(delayed)

    def claim(self, timeout_seconds: float = 1.0) -> ItemStorageData | None:
        """Claim the next eligible item, blocking up to ``timeout_seconds``."""
        deadline = time.monotonic() + max(0.0, timeout_seconds)

        while True:
            item_id = self._claim_script(
                keys=[self.wait_key, self.delayed_key, self.active_key], args=[epoch_ms()]
            )
            if item_id:
                return self._mark_active(item_id)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None

            # Block on the wait list until a new item arrives or the next retry is due
            wait = remaining
            head = self.redis.zrange(self.delayed_key, 0, 0, withscores=True)
            if head:
                _head_id, due_at = head[0]
                wait = min(wait, max((float(due_at) - epoch_ms()) / 1000, 0.01))

            item_id = self.redis.blmove(
                self.wait_key, self.active_key, max(wait, 0.01), "LEFT", "RIGHT"
            )
            if item_id:
                return self._mark_active(item_id)

    def ack(self, item_id: str, result: Any = None) -> None:
        """Mark item completed and apply retention."""
        item = self._require(item_id)
        now = utc_now().isoformat()
        item["attempts_made"] = int(item.get("attempts_made", 0)) + 1
        item["status"] = ItemStatus.COMPLETED.value
        item["result"] = result
        item["finished_at"] = now
        item["updated_at"] = now

        pipe = self.redis.pipeline()
        pipe.hset(self._make_item_key(item_id), "data", self._serialize(item))
        self._release(pipe, item_id)
        pipe.hdel(self.stalled_key, item_id)
        pipe.rpush(self.completed_key, item_id)
        pipe.execute()

        self._trim(self.completed_key, self.keep_completed)

    def fail(self, item_id: str, error: dict[str, Any] | None = None) -> bool:
        """Record a failed attempt; reschedule with backoff or mark failed."""
        item = self._require(item_id)
        now = utc_now().isoformat()
        attempts_made = int(item.get("attempts_made", 0)) + 1
        backoff = BackoffPolicy.from_dict(item.get("backoff"))

        item["attempts_made"] = attempts_made
        item["last_error"] = error
        item["updated_at"] = now

        pipe = self.redis.pipeline()
        self._release(pipe, item_id)

        if backoff.should_retry(attempts_made):
            eligible_at = epoch_ms() + backoff.delay_for(attempts_made)
            item["status"] = ItemStatus.DELAYED.value
            item["eligible_at"] = eligible_at
            pipe.hset(self._make_item_key(item_id), "data", self._serialize(item))
            pipe.zadd(self.delayed_key, {item_id: eligible_at})
            pipe.execute()
            return True

        item["status"] = ItemStatus.FAILED.value
        item["finished_at"] = now
        pipe.hset(self._make_item_key(item_id), "data", self._serialize(item))
        pipe.hdel(self.stalled_key, item_id)
        pipe.rpush(self.failed_key, item_id)
        pipe.execute()

        self._trim(self.failed_key, self.keep_failed)
        return False

    def get_item(self, item_id: str) -> ItemStorageData | None:
        """Get an item (HGET {item_key} data)."""
        data = self.redis.hget(self._make_item_key(item_id), "data")
        if data is None:
            return None
        return self._deserialize(data)  # type: ignore[return-value]

    def get_items_batch(self, item_ids: list[str]) -> dict[str, ItemStorageData]:
        """
        Get multiple items using one pipeline round-trip.

        Args:
            item_ids: Item ids to fetch

        Returns:
            Mapping of item_id to item data (only found items)
        """
        if not item_ids:
            return {}

        pipe = self.redis.pipeline()
        for item_id in item_ids:
            pipe.hget(self._make_item_key(item_id), "data")
        results = pipe.execute()

        items: dict[str, ItemStorageData] = {}
        for item_id, data in zip(item_ids, results, strict=False):
            if data is not None:
                items[item_id] = self._deserialize(data)  # type: ignore[assignment]
        return items

    def get_counts(self) -> QueueCounts:
        """Count items per status from the lifecycle structures."""
        pipe = self.redis.pipeline()
        pipe.llen(self.wait_key)
        pipe.zcard(self.delayed_key)
        pipe.llen(self.active_key)
        pipe.llen(self.completed_key)
        pipe.llen(self.failed_key)
        waiting, delayed, active, completed, failed = pipe.execute()
        return {
            "waiting": int(waiting),
            "delayed": int(delayed),
            "active": int(active),
            "completed": int(completed),
            "failed": int(failed),
        }

    def list_items(self, status: str | None = None, limit: int = 20) -> list[ItemStorageData]:
        """List items, most recently updated first."""
        sources = {
            ItemStatus.WAITING.value: lambda: self.redis.lrange(self.wait_key, 0, limit - 1),
            ItemStatus.DELAYED.value: lambda: self.redis.zrange(self.delayed_key, 0, limit - 1),
            ItemStatus.ACTIVE.value: lambda: self.redis.lrange(self.active_key, 0, limit - 1),
            ItemStatus.COMPLETED.value: lambda: self.redis.lrange(self.completed_key, -limit, -1),
            ItemStatus.FAILED.value: lambda: self.redis.lrange(self.failed_key, -limit, -1),
        }
        if status is not None and status not in sources:
            raise ValueError(f"Unknown item status: {status}")

        selected = [status] if status else list(sources)
        item_ids: list[str] = []
        for name in selected:
            item_ids.extend(sources[name]())

        items = list(self.get_items_batch(item_ids).values())
        items.sort(key=lambda i: i.get("updated_at", ""), reverse=True)
        return items[:limit]

    def recover_stalled(self) -> StalledRecovery:
        """
        Renew held leases, then requeue or fail items whose lease expired.

        Returns:
            The ids moved back to the wait list and the ids marked failed
        """
        self._renew_leases()
        requeued, failed = self._recover_script(
            keys=[
                self.active_key,
                self.leases_key,
                self.wait_key,
                self.stalled_key,
                self.failed_key,
            ],
            args=[epoch_ms(), self.lease_ms, self.max_stalled_count],
        )
        requeued, failed = list(requeued), list(failed)

        now = utc_now().isoformat()
        for item_id in requeued:
            item = self.get_item(item_id)
            # A worker may already have claimed it again
            if item is None or item.get("status") != ItemStatus.ACTIVE.value:
                continue
            item["status"] = ItemStatus.WAITING.value
            item["stalled_count"] = int(item.get("stalled_count", 0)) + 1
            item["updated_at"] = now
            self.redis.hset(self._make_item_key(item_id), "data", self._serialize(dict(item)))

        for item_id in failed:
            item = self.get_item(item_id)
            if item is None:
                continue
            item["status"] = ItemStatus.FAILED.value
            item["stalled_count"] = int(item.get("stalled_count", 0)) + 1
            item["last_error"] = {
                "kind": "stalled",
                "error": f"Item stalled more than {self.max_stalled_count} time(s)",
            }
            item["finished_at"] = now
            item["updated_at"] = now
            self.redis.hset(self._make_item_key(item_id), "data", self._serialize(dict(item)))
        if failed:
            self._trim(self.failed_key, self.keep_failed)

        return {"requeued": requeued, "failed": failed}

    def ping(self) -> bool:
        """PING the server."""
        try:
            return bool(self.redis.ping())
        except Exception as e:
            raise QueueConnectionError(f"Redis unreachable for queue '{self.name}': {e}") from e

    def close(self) -> None:
        """Close the client's connection pool."""
        self.redis.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, item_id: str) -> dict[str, Any]:
        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id, self.name)
        return dict(item)

    def _mark_active(self, item_id: str) -> ItemStorageData | None:
        item = self.get_item(item_id)
        if item is None:
            # Evicted while queued; drop the dangling id
            self.redis.lrem(self.active_key, 0, item_id)
            return None

        with self._held_lock:
            self._held.add(item_id)
        self.redis.zadd(self.leases_key, {item_id: epoch_ms() + self.lease_ms})

        item["status"] = ItemStatus.ACTIVE.value
        item["updated_at"] = utc_now().isoformat()
        self.redis.hset(self._make_item_key(item_id), "data", self._serialize(dict(item)))
        return item

    def _release(self, pipe: Any, item_id: str) -> None:
        """Queue the commands that take a claimed id out of circulation."""
        with self._held_lock:
            self._held.discard(item_id)
        pipe.lrem(self.active_key, 0, item_id)
        # Recovered while still running here; do not run it twice
        pipe.lrem(self.wait_key, 0, item_id)
        pipe.zrem(self.leases_key, item_id)

    def _renew_leases(self) -> None:
        with self._held_lock:
            held = list(self._held)
        if not held:
            return
        expires_at = epoch_ms() + self.lease_ms
        # xx: never resurrect a lease that recovery already removed
        self.redis.zadd(self.leases_key, {item_id: expires_at for item_id in held}, xx=True)

    def _trim(self, list_key: str, keep: int) -> None:
        """Evict the oldest retained terminal items beyond ``keep``."""
        overflow = int(self.redis.llen(list_key)) - max(keep, 0)
        if overflow <= 0:
            return

        pipe = self.redis.pipeline()
        for _ in range(overflow):
            pipe.lpop(list_key)
        evicted = [item_id for item_id in pipe.execute() if item_id]

        if evicted:
            self.redis.delete(*(self._make_item_key(item_id) for item_id in evicted))

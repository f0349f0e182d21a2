"""
Switchyard - Priority Webhook Relay with Dynamic Worker Rebalancing

Usage:
    from switchyard import Dispatcher, Priority, WebhookProcessor
    from switchyard.adapters.queue import InMemoryQueueAdapter

    high = InMemoryQueueAdapter("HighPriorityQueue")
    low = InMemoryQueueAdapter("LowPriorityQueue")
    processor = WebhookProcessor("https://n8n.example.com/webhook/abc")

    dispatcher = Dispatcher(high, low, processor, worker_count=5)
    dispatcher.start()

    # Blocks until the item succeeds, exhausts its retries, or times out
    outcome = dispatcher.submit({"order": 42}, Priority.HIGH, timeout_seconds=300)
    if outcome.ok:
        print(outcome.status_code, outcome.body)

    # Fire-and-forget
    item_id = dispatcher.submit_detached({"id": 1}, Priority.LOW, name="TestJob-1")

    dispatcher.stop()

Redis-backed queues:
    import redis
    from switchyard.contrib.adapters.queue import RedisQueueAdapter

    client = redis.Redis(host="localhost", port=6379, decode_responses=True)
    high = RedisQueueAdapter(client, "HighPriorityQueue")
    low = RedisQueueAdapter(client, "LowPriorityQueue")
"""

from switchyard.adapters.queue import InMemoryQueueAdapter
from switchyard.core import (
    CompletionOutcome,
    CompletionTimeout,
    ConfigurationError,
    Dispatcher,
    DispatcherStateError,
    Failure,
    FailureKind,
    ItemNotFoundError,
    ItemStatus,
    JobProcessor,
    Priority,
    QueueConnectionError,
    QueueError,
    Success,
    SwitchyardError,
    WebhookProcessor,
    WorkerState,
)
from switchyard.utils.retry import BackoffPolicy

__all__ = [
    # Core
    "Dispatcher",
    "Priority",
    "ItemStatus",
    "WorkerState",
    "BackoffPolicy",
    # Processing
    "JobProcessor",
    "WebhookProcessor",
    "Success",
    "Failure",
    "FailureKind",
    "CompletionTimeout",
    "CompletionOutcome",
    # Exceptions
    "SwitchyardError",
    "ConfigurationError",
    "QueueError",
    "ItemNotFoundError",
    "QueueConnectionError",
    "DispatcherStateError",
    # Queue Adapters
    "InMemoryQueueAdapter",
]
